"""Prompt templates for grounded chat"""


SYSTEM_PROMPT = """You are a helpful assistant answering questions using only the provided context.
- Use only the context; if it is insufficient, say you do not have enough information.
- Do not fabricate facts, files, or quotes.
- Cite sources in brackets using the provided sourceId, e.g. [fileId:3].
- Keep answers concise unless the user asks for detail."""


USER_PROMPT = """Context:
{context}

Question:
{query}

Answer with citations."""


EMPTY_CONTEXT = "(no context provided)"

# Canned answers
FALLBACK_ANSWER = "I don't have enough information to answer that right now."
NO_EMBEDDINGS_ANSWER = (
    "I don't have any indexed Drive content yet. Run ingestion and embeddings, then try again."
)
NO_MATCHES_ANSWER = (
    "I couldn't find relevant context in your indexed Drive content. "
    "Try rephrasing or ingesting more files."
)


def build_user_message(context_block: str, query: str) -> str:
    """Build the final user turn carrying the context and the question"""
    return USER_PROMPT.format(
        context=context_block or EMPTY_CONTEXT,
        query=query
    )


def format_source_header(source_id: str, file_name: str, chunk_index: int, score: float) -> str:
    return f"Source {source_id} | {file_name} | chunk {chunk_index} | score {score:.3f}"
