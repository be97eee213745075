"""
models.py

In-memory data model of a structured screenplay.

The pipeline builds a ScriptAnalysis incrementally (one chunk at a time),
then runs validation, sequencing and voice assignment over it before handing
a snapshot to the store. Everything crossing a collaborator boundary is
converted with to_dict()/from_dict(), which use the camelCase field names the
mobile client reads.

Line numbers are absolute, 0-based positions in the extracted text.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

ACTION_CHARACTER_ID = "ACTION"


def character_key(name: str) -> str:
    """Identity key for a character: names are compared case-insensitively."""
    return name.strip().lower()


@dataclass(frozen=True)
class Chunk:
    """
    A line-aligned slice of the source text.

    hard_break is True only when the segmenter had to cut inside a line; the
    following chunk then starts on the same absolute line.
    """
    text: str
    start_line: int
    hard_break: bool = False

    @property
    def line_count(self) -> int:
        return self.text.count("\n") + 1

    @property
    def end_line(self) -> int:
        return self.start_line + self.line_count - 1

    def raw_lines(self) -> List[RawLine]:
        return [
            RawLine(self.start_line + i, content)
            for i, content in enumerate(self.text.split("\n"))
        ]


@dataclass(frozen=True)
class RawLine:
    line_number: int
    content: str


@dataclass
class ActionLine:
    text: str
    line_number: int
    sequential_number: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"text": self.text, "lineNumber": self.line_number}
        if self.sequential_number is not None:
            d["sequentialNumber"] = self.sequential_number
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ActionLine":
        return cls(
            text=d["text"],
            line_number=int(d["lineNumber"]),
            sequential_number=d.get("sequentialNumber"),
        )


@dataclass
class Scene:
    name: str
    start_line: int
    end_line: int
    location: Optional[str] = None
    time_of_day: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "name": self.name,
            "startLine": self.start_line,
            "endLine": self.end_line,
        }
        if self.location is not None:
            d["location"] = self.location
        if self.time_of_day is not None:
            d["timeOfDay"] = self.time_of_day
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Scene":
        return cls(
            name=d["name"],
            start_line=int(d["startLine"]),
            end_line=int(d["endLine"]),
            location=d.get("location"),
            time_of_day=d.get("timeOfDay"),
        )


@dataclass
class DialogueLine:
    """
    One speech of a character.

    multi_line marks speeches assembled from more than one source line.
    """
    text: str
    line_number: int
    voices: Dict[str, str] = field(default_factory=dict)
    multi_line: bool = False
    sequential_number: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"text": self.text, "lineNumber": self.line_number}
        if self.voices:
            d["voices"] = dict(self.voices)
        if self.multi_line:
            d["multiLine"] = True
        if self.sequential_number is not None:
            d["sequentialNumber"] = self.sequential_number
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DialogueLine":
        return cls(
            text=d["text"],
            line_number=int(d["lineNumber"]),
            voices=dict(d.get("voices") or {}),
            multi_line=bool(d.get("multiLine", False)),
            sequential_number=d.get("sequentialNumber"),
        )


@dataclass
class Character:
    """
    name: display form, as first seen
    lines: always len(dialogue); call recount() after mutating dialogue
    first_appearance: earliest absolute line where the character was seen
    """
    name: str
    first_appearance: int
    dialogue: List[DialogueLine] = field(default_factory=list)
    lines: int = 0

    def __post_init__(self) -> None:
        self.recount()

    @property
    def key(self) -> str:
        return character_key(self.name)

    def recount(self) -> None:
        self.lines = len(self.dialogue)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "lines": self.lines,
            "firstAppearance": self.first_appearance,
            "dialogue": [d.to_dict() for d in self.dialogue],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Character":
        return cls(
            name=d["name"],
            first_appearance=int(d["firstAppearance"]),
            dialogue=[DialogueLine.from_dict(x) for x in d.get("dialogue", [])],
        )


@dataclass
class ProcessedLine:
    character_id: str
    character_name: str
    text: str
    original_line_number: int
    sequential_number: int
    is_action: bool = False
    is_user: bool = False
    voices: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "characterId": self.character_id,
            "characterName": self.character_name,
            "text": self.text,
            "originalLineNumber": self.original_line_number,
            "sequentialNumber": self.sequential_number,
            "isAction": self.is_action,
            "isUser": self.is_user,
        }
        if self.voices:
            d["voices"] = dict(self.voices)
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ProcessedLine":
        return cls(
            character_id=d["characterId"],
            character_name=d["characterName"],
            text=d["text"],
            original_line_number=int(d["originalLineNumber"]),
            sequential_number=int(d["sequentialNumber"]),
            is_action=bool(d.get("isAction", False)),
            is_user=bool(d.get("isUser", False)),
            voices=dict(d.get("voices") or {}),
        )


@dataclass
class ChunkError:
    chunk_index: int
    start_line: int
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {"chunkIndex": self.chunk_index, "startLine": self.start_line, "error": self.error}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ChunkError":
        return cls(int(d["chunkIndex"]), int(d["startLine"]), d["error"])


@dataclass
class AnalysisMetadata:
    total_lines: int = 0
    estimated_duration: int = 0  # minutes
    chunk_errors: List[ChunkError] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalLines": self.total_lines,
            "estimatedDuration": self.estimated_duration,
            "chunkErrors": [e.to_dict() for e in self.chunk_errors],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AnalysisMetadata":
        return cls(
            total_lines=int(d.get("totalLines", 0)),
            estimated_duration=int(d.get("estimatedDuration", 0)),
            chunk_errors=[ChunkError.from_dict(x) for x in d.get("chunkErrors", [])],
        )


@dataclass
class ScriptAnalysis:
    """Root aggregate handed to the store once processing completes."""
    characters: List[Character] = field(default_factory=list)
    scenes: List[Scene] = field(default_factory=list)
    action_lines: List[ActionLine] = field(default_factory=list)
    processed_lines: List[ProcessedLine] = field(default_factory=list)
    metadata: AnalysisMetadata = field(default_factory=AnalysisMetadata)

    def character(self, name: str) -> Optional[Character]:
        key = character_key(name)
        for c in self.characters:
            if c.key == key:
                return c
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "characters": [c.to_dict() for c in self.characters],
            "scenes": [s.to_dict() for s in self.scenes],
            "actionLines": [a.to_dict() for a in self.action_lines],
            "processedLines": [p.to_dict() for p in self.processed_lines],
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ScriptAnalysis":
        return cls(
            characters=[Character.from_dict(x) for x in d.get("characters", [])],
            scenes=[Scene.from_dict(x) for x in d.get("scenes", [])],
            action_lines=[ActionLine.from_dict(x) for x in d.get("actionLines", [])],
            processed_lines=[ProcessedLine.from_dict(x) for x in d.get("processedLines", [])],
            metadata=AnalysisMetadata.from_dict(d.get("metadata", {})),
        )


@dataclass
class ChunkResult:
    """Output of classifying one chunk, before it is merged."""
    chunk_index: int
    start_line: int
    characters: List[Character] = field(default_factory=list)
    scenes: List[Scene] = field(default_factory=list)
    action_lines: List[ActionLine] = field(default_factory=list)


@dataclass
class VoiceAssignment:
    character: str
    voice: str
    category: str
    test_text: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "voice": self.voice,
            "category": self.category,
            "testText": self.test_text,
        }

    @classmethod
    def from_dict(cls, character: str, d: Dict[str, Any]) -> "VoiceAssignment":
        return cls(
            character=character,
            voice=d["voice"],
            category=d.get("category", ""),
            test_text=d.get("testText", ""),
        )
