"""Tests for the block content model."""

import json
import logging

import pytest

from folio.services.blocks import (
    BlockDocument,
    DriveBlock,
    ImageBlock,
    ListBlock,
    TextBlock,
    YouTubeBlock,
    drive_id,
    youtube_id,
)


def _doc(*blocks):
    return {"blocks": list(blocks)}


def _block(block_id, block_type, content, order):
    return {"id": block_id, "type": block_type, "content": content, "order": order}


class TestMutations:

    def test_add_assigns_next_position(self):
        doc = BlockDocument()
        first = doc.add_block("text", "hello")
        second = doc.add_block("image", {"url": "x"})
        assert [b.id for b in doc.blocks] == [first, second]
        assert [b.order for b in doc.blocks] == [0, 1]

    def test_add_uses_type_default_payload(self):
        doc = BlockDocument()
        block_id = doc.add_block("list")
        assert doc.get(block_id).content == {"ordered": False, "items": []}

    def test_add_unknown_type_raises(self):
        with pytest.raises(ValueError, match="Invalid block type"):
            BlockDocument().add_block("carousel")

    def test_add_rejects_mismatched_payload(self):
        with pytest.raises(ValueError):
            BlockDocument().add_block("image", "not-an-object")

    def test_move_image_up(self):
        """[text(0), image(1)], move image up gives [image(0), text(1)]."""
        doc = BlockDocument()
        text_id = doc.add_block("text", "hello")
        image_id = doc.add_block("image", {"url": "x"})

        assert doc.move_block(image_id, "up") is True

        assert [(b.id, b.order) for b in doc.blocks] == [(image_id, 0), (text_id, 1)]

    def test_move_at_boundaries_is_noop(self):
        doc = BlockDocument()
        first = doc.add_block("text", "a")
        last = doc.add_block("text", "b")
        assert doc.move_block(first, "up") is False
        assert doc.move_block(last, "down") is False
        assert [b.id for b in doc.blocks] == [first, last]

    def test_move_invalid_direction(self):
        doc = BlockDocument()
        block_id = doc.add_block("text", "a")
        with pytest.raises(ValueError):
            doc.move_block(block_id, "left")

    def test_update_replaces_payload_only(self):
        doc = BlockDocument()
        block_id = doc.add_block("text", "old")
        assert doc.update_block_payload(block_id, "new") is True
        block = doc.get(block_id)
        assert block.content == "new"
        assert block.order == 0

    def test_update_unknown_id_is_silent(self):
        assert BlockDocument().update_block_payload("nope", "x") is False

    def test_update_validates_payload(self):
        doc = BlockDocument()
        block_id = doc.add_block("list", {"items": ["a"]})
        with pytest.raises(ValueError):
            doc.update_block_payload(block_id, {"items": [1, 2]})
        assert doc.get(block_id).content == {"items": ["a"]}

    def test_remove_renumbers(self):
        doc = BlockDocument()
        ids = [doc.add_block("text", str(n)) for n in range(3)]
        assert doc.remove_block(ids[0]) is True
        assert [(b.id, b.order) for b in doc.blocks] == [(ids[1], 0), (ids[2], 1)]
        assert doc.remove_block("missing") is False


class TestSerialization:

    def test_round_trip_is_exact(self):
        stored = _doc(
            _block("a", "text", "Intro", 0),
            _block("b", "image", {"url": "https://x/y.png", "caption": "Y", "alt": "y"}, 1),
            _block("c", "youtube", {"url": "https://youtu.be/abc123"}, 2),
            _block("d", "drive", {"url": "https://drive.google.com/file/d/F1/view"}, 3),
            _block("e", "list", {"ordered": True, "items": ["one", "two"]}, 4),
        )
        assert BlockDocument.deserialize(stored).serialize() == stored

    def test_json_string_input(self):
        stored = _doc(_block("a", "text", "Hi", 0))
        doc = BlockDocument.deserialize(json.dumps(stored))
        assert json.loads(doc.to_json()) == stored

    def test_deserialize_sorts_by_order_and_keeps_values(self):
        doc = BlockDocument.deserialize(_doc(
            _block("late", "text", "b", 7),
            _block("early", "text", "a", 3),
        ))
        assert [(b.id, b.order) for b in doc.blocks] == [("early", 3), ("late", 7)]

    def test_unknown_types_are_dropped(self, caplog):
        with caplog.at_level(logging.WARNING):
            doc = BlockDocument.deserialize(_doc(
                _block("a", "text", "first", 0),
                _block("q", "quote", "dropped", 1),
                _block("b", "text", "second", 2),
            ))
        assert [b.id for b in doc.blocks] == ["a", "b"]
        assert "unknown type" in caplog.text

    def test_malformed_blocks_are_dropped(self):
        doc = BlockDocument.deserialize(_doc(
            _block("a", "image", "no-url", 0),
            {"type": "text", "content": "no id", "order": 1},
            _block("c", "text", "ok", "2"),
            "not a block",
            _block("d", "text", "kept", 3),
        ))
        assert [b.id for b in doc.blocks] == ["d"]

    @pytest.mark.parametrize("value", [None, "", {}, {"blocks": []}])
    def test_empty_values(self, value):
        assert BlockDocument.deserialize(value).serialize() == {"blocks": []}

    def test_legacy_plain_text(self):
        doc = BlockDocument.deserialize("Hello, I build things.")
        assert [(b.id, b.type, b.content) for b in doc.blocks] == [
            ("legacy", "text", "Hello, I build things.")
        ]

    def test_plain_text_flattening(self):
        doc = BlockDocument.deserialize(_doc(
            _block("a", "text", "Intro", 0),
            _block("b", "image", {"url": "x"}, 1),
            _block("c", "list", {"items": ["one", "two"]}, 2),
        ))
        assert doc.to_plain_text() == "Intro\n\none\ntwo"


class TestBlockTypes:

    def test_registry_instances(self):
        doc = BlockDocument()
        kinds = ["text", "image", "youtube", "drive", "list"]
        for kind in kinds:
            doc.add_block(kind)
        assert [type(b) for b in doc.blocks] == [
            TextBlock, ImageBlock, YouTubeBlock, DriveBlock, ListBlock
        ]

    def test_youtube_embed(self):
        block = YouTubeBlock("v", {"url": "https://www.youtube.com/watch?v=dQw4w9WgXcQ&t=3"}, 0)
        assert block.video_id == "dQw4w9WgXcQ"
        assert block.embed_url == "https://www.youtube.com/embed/dQw4w9WgXcQ"

    def test_drive_embed(self):
        block = DriveBlock("d", {"url": "https://drive.google.com/file/d/1AbC-_x/view?usp=sharing"}, 0)
        assert block.embed_url == "https://drive.google.com/file/d/1AbC-_x/preview"

    def test_bad_url_has_no_embed_but_is_valid(self):
        block = YouTubeBlock("v", {"url": "https://example.com/video"}, 0)
        assert block.embed_url is None
        assert block.to_dict()["content"] == {"url": "https://example.com/video"}

    def test_id_helpers(self):
        assert youtube_id("https://youtu.be/abc") == "abc"
        assert youtube_id(None) is None
        assert drive_id("https://drive.google.com/file/d/XYZ/view") == "XYZ"
        assert drive_id("nope") is None

    def test_content_is_copied(self):
        payload = {"ordered": False, "items": ["a"]}
        block = ListBlock("l", payload, 0)
        payload["items"].append("b")
        assert block.list_items == ["a"]
