"""CHARTA — Document Index.

The search index that constitution sections are handed to after rendering.
Question answering over the index lives elsewhere; only ingestion is here.
"""

import re
from abc import ABC, abstractmethod

from sqlmodel import Session

from charta.core.logging import get_logger
from charta.models.constitution_models import IndexedDocument

logger = get_logger("constitution.index")

_HEADING = re.compile(r"^\s{0,3}#{1,6}\s+\S", re.MULTILINE)


class DocumentIndex(ABC):
    """Abstract destination for rendered constitution markdown."""

    @abstractmethod
    async def index(
        self,
        league_id: str,
        markdown: str,
        version: str,
        kind: str = "NORMALIZED",
        title: str = "",
    ) -> int:
        """Index one document and return the number of sections indexed."""
        ...


def count_sections(markdown: str) -> int:
    """Headings count as sections; without any, non-empty paragraphs do."""
    headings = len(_HEADING.findall(markdown))
    if headings:
        return headings
    return len([block for block in re.split(r"\n\s*\n", markdown) if block.strip()])


class DatabaseDocumentIndex(DocumentIndex):
    """Stores indexed documents in the application database."""

    def __init__(self, session: Session):
        self.session = session

    async def index(
        self,
        league_id: str,
        markdown: str,
        version: str,
        kind: str = "NORMALIZED",
        title: str = "",
    ) -> int:
        sections = count_sections(markdown)
        doc = IndexedDocument(
            league_id=league_id,
            kind=kind,
            version=version,
            title=title,
            content=markdown,
            rules_indexed=sections,
        )
        self.session.add(doc)
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        logger.info(
            f"Indexed '{title}' ({sections} sections)", extra={"league_id": league_id}
        )
        return sections
