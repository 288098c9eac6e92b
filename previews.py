# 文件名: previews.py

from __future__ import annotations

import io
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence

from PIL import Image, UnidentifiedImageError

from renamer import InputItem

logger = logging.getLogger(__name__)

DEFAULT_THUMBNAIL_SIZE = 100


def format_size(size_bytes: int) -> str:
    return f"{size_bytes / 1024:.1f} KB"


@dataclass
class Preview:
    item: InputItem
    image: Optional[Image.Image]

    @property
    def caption(self) -> str:
        return f"{self.item.original_filename} ({format_size(self.item.size_bytes)})"


def _make_thumbnail(item: InputItem, size: int) -> Optional[Image.Image]:
    """在内存中解码图片并缩成缩略图；无法识别的文件返回 None"""
    try:
        with Image.open(io.BytesIO(item.content)) as img:
            img.thumbnail((size, size))
            # 复制一份，原始解码器在 with 结束时关闭
            return img.copy()
    except (UnidentifiedImageError, OSError) as exc:
        logger.warning("无法生成 %s 的预览: %s", item.original_filename, exc)
        return None


@contextmanager
def open_previews(items: Sequence[InputItem], size: int = DEFAULT_THUMBNAIL_SIZE) -> Iterator[List[Preview]]:
    """为每个文件生成缩略图，退出时无论成功与否都会释放全部图片"""
    previews: List[Preview] = []
    try:
        for item in items:
            previews.append(Preview(item=item, image=_make_thumbnail(item, size)))
        yield previews
    finally:
        for preview in previews:
            if preview.image is not None:
                preview.image.close()
                preview.image = None
        logger.debug("已释放 %d 个预览", len(previews))
