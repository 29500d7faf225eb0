"""Allow ``python -m knowledge_rag.cli``."""

from knowledge_rag.cli.knowledge import main

main()
