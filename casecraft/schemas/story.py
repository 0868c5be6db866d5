from typing import List

from casecraft.schemas.testcase import CamelModel


class ParsedStory(CamelModel):
    """Candidate story extracted from an uploaded file. Never persisted."""

    id: int
    content: str
    source: str


class ParseResult(CamelModel):
    stories: List[ParsedStory]
    file_name: str
    total_found: int
