"""Command-line interface for ragpipe.

- ``python -m ragpipe.cli ingest FILE --user U`` -- ingest a document
- ``python -m ragpipe.cli reprocess DOC_ID`` -- re-chunk and re-embed
- ``python -m ragpipe.cli delete DOC_ID`` -- remove a document everywhere
- ``python -m ragpipe.cli query "question" --user U`` -- build a RAG prompt
- ``python -m ragpipe.cli stats`` -- vector and document counts

The default ``memory`` stores live only for one invocation; set
``RAGPIPE_VECTOR_STORE`` and ``RAGPIPE_DOCUMENT_STORE`` to persistent
backends to use the commands across runs.
"""
