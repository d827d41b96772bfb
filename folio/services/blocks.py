"""Block content model.

A block document is an ordered list of typed content blocks. It is stored
as a single JSON value shaped like:

    {"blocks": [{"id": "...", "type": "text", "content": "...", "order": 0}]}

Resumes keep it JSON-stringified in intro_text; projects keep it as JSON
in content. Block types form a tagged union, one class per type tag:

    text     content is a string
    image    {"url": str, "caption": str, "alt": str}
    youtube  {"url": str, "caption": str}   (video embed)
    drive    {"url": str, "caption": str}   (video/document embed)
    list     {"ordered": bool, "items": [str]}

Mutations always renumber "order" to 0..n-1. Deserializing keeps the
stored order values untouched and drops blocks with an unknown type or a
malformed payload.
"""

import copy
import json
import logging
import re
import uuid

logger = logging.getLogger(__name__)

YOUTUBE_RE = re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/|youtube\.com/embed/)([^&\n?#/]+)")
DRIVE_RE = re.compile(r"/file/d/([a-zA-Z0-9_-]+)")

DIRECTIONS = ("up", "down")


def youtube_id(url):
    """Extract the video ID from a YouTube watch/share URL, or None."""
    match = YOUTUBE_RE.search(url or "")
    return match.group(1) if match else None


def drive_id(url):
    """Extract the file ID from a Google Drive share URL, or None."""
    match = DRIVE_RE.search(url or "")
    return match.group(1) if match else None


def new_block_id():
    return uuid.uuid4().hex


def _optional_str(content, key):
    value = content.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string.")


class Block:
    """Base class. Subclasses set `type` and implement validate()."""

    type = None

    def __init__(self, block_id, content, order):
        self.id = block_id
        self.content = self.validate(content)
        self.order = order

    @classmethod
    def default_content(cls):
        raise NotImplementedError

    @classmethod
    def validate(cls, content):
        """Return a private copy of content, or raise ValueError."""
        raise NotImplementedError

    def to_dict(self):
        return {
            "id": self.id,
            "type": self.type,
            "content": copy.deepcopy(self.content),
            "order": self.order,
        }

    def plain_text(self):
        return ""

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.id} order={self.order}>"


class TextBlock(Block):
    type = "text"

    @classmethod
    def default_content(cls):
        return ""

    @classmethod
    def validate(cls, content):
        if not isinstance(content, str):
            raise ValueError("Text block content must be a string.")
        return content

    def plain_text(self):
        return self.content


class ImageBlock(Block):
    type = "image"

    @classmethod
    def default_content(cls):
        return {"url": "", "caption": ""}

    @classmethod
    def validate(cls, content):
        if not isinstance(content, dict) or not isinstance(content.get("url"), str):
            raise ValueError("Image block content needs a 'url' string.")
        _optional_str(content, "caption")
        _optional_str(content, "alt")
        return copy.deepcopy(content)

    @property
    def url(self):
        return self.content["url"]

    @property
    def caption(self):
        return self.content.get("caption") or ""


class VideoEmbedBlock(Block):
    """Embedded player. The URL is advisory: a bad URL just has no embed."""

    @classmethod
    def default_content(cls):
        return {"url": "", "caption": ""}

    @classmethod
    def validate(cls, content):
        if not isinstance(content, dict) or not isinstance(content.get("url"), str):
            raise ValueError(f"{cls.type.capitalize()} block content needs a 'url' string.")
        _optional_str(content, "caption")
        return copy.deepcopy(content)

    @property
    def url(self):
        return self.content["url"]

    @property
    def caption(self):
        return self.content.get("caption") or ""

    @property
    def video_id(self):
        raise NotImplementedError

    @property
    def embed_url(self):
        raise NotImplementedError


class YouTubeBlock(VideoEmbedBlock):
    type = "youtube"

    @property
    def video_id(self):
        return youtube_id(self.url)

    @property
    def embed_url(self):
        vid = self.video_id
        return f"https://www.youtube.com/embed/{vid}" if vid else None


class DriveBlock(VideoEmbedBlock):
    type = "drive"

    @property
    def video_id(self):
        return drive_id(self.url)

    @property
    def embed_url(self):
        fid = self.video_id
        return f"https://drive.google.com/file/d/{fid}/preview" if fid else None


class ListBlock(Block):
    type = "list"

    @classmethod
    def default_content(cls):
        return {"ordered": False, "items": []}

    @classmethod
    def validate(cls, content):
        if not isinstance(content, dict):
            raise ValueError("List block content must be an object.")
        items = content.get("items", [])
        if not isinstance(items, list) or not all(isinstance(i, str) for i in items):
            raise ValueError("List block 'items' must be a list of strings.")
        if not isinstance(content.get("ordered", False), bool):
            raise ValueError("List block 'ordered' must be true or false.")
        return copy.deepcopy(content)

    @property
    def ordered(self):
        return self.content.get("ordered", False)

    @property
    def list_items(self):
        return list(self.content.get("items", []))

    def plain_text(self):
        return "\n".join(self.list_items)


BLOCK_TYPES = {
    cls.type: cls
    for cls in (TextBlock, ImageBlock, YouTubeBlock, DriveBlock, ListBlock)
}


def block_from_dict(data):
    """Build a Block from its stored dict, or None when it can't be used."""
    if not isinstance(data, dict):
        logger.warning(f"Dropping non-object block: {data!r}")
        return None
    block_cls = BLOCK_TYPES.get(data.get("type"))
    if block_cls is None:
        logger.warning(f"Dropping block {data.get('id')} of unknown type '{data.get('type')}'")
        return None
    block_id = data.get("id")
    order = data.get("order")
    if not isinstance(block_id, str) or not block_id:
        logger.warning(f"Dropping {block_cls.type} block without an id")
        return None
    if not isinstance(order, int) or isinstance(order, bool):
        logger.warning(f"Dropping block {block_id}: order must be an integer")
        return None
    try:
        return block_cls(block_id, data.get("content"), order)
    except ValueError as e:
        logger.warning(f"Dropping block {block_id}: {e}")
        return None


class BlockDocument:
    def __init__(self, blocks=None):
        self._blocks = sorted(blocks or [], key=lambda b: b.order)

    @property
    def blocks(self):
        return list(self._blocks)

    def __len__(self):
        return len(self._blocks)

    def __iter__(self):
        return iter(list(self._blocks))

    def get(self, block_id):
        for block in self._blocks:
            if block.id == block_id:
                return block
        return None

    def _index(self, block_id):
        for index, block in enumerate(self._blocks):
            if block.id == block_id:
                return index
        return None

    def _renumber(self):
        for index, block in enumerate(self._blocks):
            block.order = index

    # ─── Mutations ──────────────────────────────────────────────

    def add_block(self, block_type, initial_payload=None):
        """Append a block of block_type. Returns the new block's id."""
        block_cls = BLOCK_TYPES.get(block_type)
        if block_cls is None:
            raise ValueError(
                f"Invalid block type '{block_type}'. Must be one of: {', '.join(BLOCK_TYPES)}"
            )
        content = block_cls.default_content() if initial_payload is None else initial_payload
        block = block_cls(new_block_id(), content, len(self._blocks))
        self._blocks.append(block)
        self._renumber()
        return block.id

    def update_block_payload(self, block_id, payload):
        """Replace a block's content in place. Unknown ids are ignored."""
        block = self.get(block_id)
        if block is None:
            logger.debug(f"update_block_payload: no block {block_id}")
            return False
        block.content = block.validate(payload)
        return True

    def move_block(self, block_id, direction):
        """Swap a block with its neighbour. No-op at either boundary."""
        if direction not in DIRECTIONS:
            raise ValueError(f"Invalid direction '{direction}'. Must be 'up' or 'down'.")
        index = self._index(block_id)
        if index is None:
            return False
        target = index - 1 if direction == "up" else index + 1
        if target < 0 or target >= len(self._blocks):
            return False
        self._blocks[index], self._blocks[target] = self._blocks[target], self._blocks[index]
        self._renumber()
        return True

    def remove_block(self, block_id):
        index = self._index(block_id)
        if index is None:
            return False
        del self._blocks[index]
        self._renumber()
        return True

    # ─── Serialization ──────────────────────────────────────────

    def serialize(self):
        return {"blocks": [block.to_dict() for block in self._blocks]}

    def to_json(self):
        return json.dumps(self.serialize())

    @classmethod
    def deserialize(cls, value):
        """Build a document from a stored value.

        Accepts the {"blocks": [...]} dict, its JSON string form, or an
        empty value. A non-JSON string is treated as legacy plain text.
        """
        if value in (None, "", {}):
            return cls()
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                logger.warning("Block document is not JSON; reading it as plain text")
                return cls([TextBlock("legacy", value, 0)])
        if not isinstance(value, dict) or not isinstance(value.get("blocks", []), list):
            logger.warning(f"Ignoring malformed block document: {type(value).__name__}")
            return cls()

        blocks = [block_from_dict(item) for item in value.get("blocks", [])]
        return cls([block for block in blocks if block is not None])

    def image_urls(self):
        return {b.url for b in self._blocks if isinstance(b, ImageBlock) and b.url}

    def to_plain_text(self):
        parts = [block.plain_text() for block in self._blocks]
        return "\n\n".join(part for part in parts if part)
