from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class MetadataRecord(BaseModel):
    title: Optional[str] = Field(None, description="Decoded <title> text")
    description: Optional[str] = Field(None, description="Meta or Open Graph description")
    language: Optional[str] = Field(None, description="Raw lang attribute of the root element")
    authors: List[str] = Field(default_factory=list, description="Declared authors, in document order")
    topics: List[str] = Field(default_factory=list, description="Keywords, in document order")
    featured_image: Optional[str] = Field(None, description="Absolute URL of the featured image")

    @classmethod
    def empty(cls) -> "MetadataRecord":
        return cls()

    def is_empty(self) -> bool:
        """True when nothing at all was extracted."""
        return (
            self.title is None
            and self.description is None
            and self.language is None
            and not self.authors
            and not self.topics
            and self.featured_image is None
        )

    def to_article_data(self, url: str) -> Dict[str, Any]:
        """Row for the articles collection; empty sequences are stored as NULL."""
        return {
            "url": url,
            "title": self.title,
            "language": self.language,
            "authors": list(self.authors) or None,
            "topics": list(self.topics) or None,
            "featured_image": self.featured_image,
        }
