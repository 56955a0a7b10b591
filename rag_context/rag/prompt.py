"""
Grounded answer prompt.
"""

NO_ANSWER = "I'm sorry, but I don't know the answer to that question"

SYSTEM_PROMPT_TEMPLATE = """You are a helpful assistant that answers questions using only the provided context.
If the context does not contain the answer, reply "{no_answer}".
Do not make up information that is not drawn directly from the context.

START CONTEXT BLOCK
{context}
END OF CONTEXT BLOCK
"""


def build_system_prompt(context: str) -> str:
    """System prompt wrapping a context block; an empty block still yields the no-answer instruction."""
    return SYSTEM_PROMPT_TEMPLATE.format(no_answer=NO_ANSWER, context=context.strip())
