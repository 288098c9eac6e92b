# 文件名: renamer.py

from __future__ import annotations

import io
import logging
import random
import re
import string
import time
import unicodedata
import zipfile
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

ARCHIVE_NAME = "renamed-images.zip"
NON_ALNUM_RUN = re.compile(r"[^a-z0-9]+")


# --- 错误类型 ---

class RenamerError(Exception):
    """重命名流程中所有可向用户展示的错误的基类"""


class EmptyBatchError(RenamerError):
    def __init__(self):
        super().__init__("未上传任何文件。")


class CountMismatchError(RenamerError):
    """文件数量与名称数量不一致"""

    def __init__(self, expected: int, got: int):
        self.expected = expected
        self.got = got
        super().__init__(f"文件数量与名称数量必须一致：共 {expected} 个文件，但提供了 {got} 个名称。")


class AssemblyError(RenamerError):
    """ZIP编码失败，整个批次作废"""


# --- 数据模型 ---

@dataclass(frozen=True)
class InputItem:
    original_filename: str
    content: bytes
    size_bytes: int
    placeholder: bool = False

    @property
    def extension(self) -> str:
        # 保留点号，例如 "cat.png" -> ".png"
        dot = self.original_filename.rfind(".")
        if dot == -1:
            return ""
        return self.original_filename[dot:]


@dataclass(frozen=True)
class OutputEntry:
    name: str
    content: bytes


@dataclass(frozen=True)
class BatchSubmission:
    """一次提交的全部输入：上传的文件 + 名称文本框的原始内容"""

    items: Tuple[InputItem, ...] = ()
    names_text: str = ""

    @property
    def name_lines(self) -> List[str]:
        return split_name_lines(self.names_text)


@dataclass(frozen=True)
class ArchiveOptions:
    """ZIP打包选项，由侧边栏控件生成。

    Attributes:
        archive_name: 建议的下载文件名。
        compression: zipfile 的压缩方式 (ZIP_DEFLATED / ZIP_STORED)。
        compress_level: 压缩等级，None 表示使用 zlib 默认值。
    """

    archive_name: str = ARCHIVE_NAME
    compression: int = zipfile.ZIP_DEFLATED
    compress_level: Optional[int] = None


class BatchState(str, Enum):
    IDLE = "idle"
    FILES_LOADED = "files_loaded"
    NAMES_ENTERED = "names_entered"
    VALIDATED = "validated"
    ASSEMBLING = "assembling"
    DOWNLOADED = "downloaded"
    FAILED = "failed"


def batch_state(submission: BatchSubmission) -> BatchState:
    """根据当前输入推断批次所处的状态 (失败后也从这里重新开始)"""
    if not submission.items:
        return BatchState.IDLE
    if not submission.name_lines:
        return BatchState.FILES_LOADED
    return BatchState.NAMES_ENTERED


# --- 上传处理 ---

def placeholder_name() -> str:
    token = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"image-{int(time.time() * 1000)}-{token}"


def load_uploads(uploaded_files) -> Tuple[InputItem, ...]:
    """把 Streamlit 上传的文件对象读入内存，丢弃空文件，为无名文件生成占位名"""
    items = []
    for f in uploaded_files or ():
        if f.size == 0:
            logger.info("忽略空文件 %r", f.name)
            continue
        name = f.name
        placeholder = not name
        if placeholder:
            name = placeholder_name()
            logger.info("文件缺少名称，已自动命名为 %s", name)
        items.append(InputItem(
            original_filename=name,
            content=f.getvalue(),
            size_bytes=f.size,
            placeholder=placeholder,
        ))
    return tuple(items)


# --- 名称处理 ---

def sanitize(raw: str) -> str:
    """把一行用户输入转换为只含 [a-z0-9-] 的文件名主体"""
    decomposed = unicodedata.normalize("NFD", raw.lower())
    folded = "".join(c for c in decomposed if not unicodedata.combining(c))
    return NON_ALNUM_RUN.sub("-", folded).strip("-")


def split_name_lines(text: str) -> List[str]:
    """按行拆分，去掉首尾空白，丢弃空行"""
    lines = (line.strip() for line in text.splitlines())
    return [line for line in lines if line]


def parse_names(text: str) -> List[str]:
    stems = []
    for line in split_name_lines(text):
        stem = sanitize(line)
        if not stem:
            logger.warning("名称 %r 清理后为空，已跳过", line)
            continue
        stems.append(stem)
    return stems


def dedupe(stems: Iterable[str]) -> List[str]:
    """为重复的名称追加 -1, -2 ... 后缀，保持原有顺序。

    计数器按清理后的名称记录；同时记住已经输出过的名称，
    如果生成的后缀名恰好被用户自己占用，就继续递增。
    """
    counters = {}
    used = set()
    unique = []
    for stem in stems:
        candidate = stem
        if candidate in used:
            count = counters.get(stem, 1)
            candidate = f"{stem}-{count}"
            while candidate in used:
                count += 1
                candidate = f"{stem}-{count}"
            counters[stem] = count + 1
        used.add(candidate)
        unique.append(candidate)
    return unique


def pair(items: Sequence[InputItem], names: Sequence[str]) -> List[OutputEntry]:
    if not items:
        raise EmptyBatchError()
    if len(items) != len(names):
        raise CountMismatchError(expected=len(items), got=len(names))
    return [
        OutputEntry(name=f"{name}{item.extension}", content=item.content)
        for item, name in zip(items, names)
    ]


# --- 打包 ---

def assemble(entries: Sequence[OutputEntry], options: Optional[ArchiveOptions] = None) -> io.BytesIO:
    """在内存中生成ZIP包；任何编码错误都会让整个批次失败"""
    options = options or ArchiveOptions()
    zip_buffer = io.BytesIO()
    try:
        with zipfile.ZipFile(zip_buffer, "w", options.compression, False,
                             compresslevel=options.compress_level) as zip_file:
            for entry in entries:
                zip_file.writestr(entry.name, entry.content)
    except (OSError, ValueError, MemoryError, zipfile.BadZipFile, zipfile.LargeZipFile) as exc:
        logger.exception("生成ZIP包失败")
        raise AssemblyError(f"生成ZIP包时出错: {exc}") from exc
    zip_buffer.seek(0)
    return zip_buffer


def rename_files_in_memory(submission: BatchSubmission, options: Optional[ArchiveOptions] = None):
    """校验一次提交，按名称重命名所有文件并打包，返回 (ZIP缓冲区, 报告文本)"""
    report_lines = ["--- 重命名报告 ---"]

    if not submission.items:
        raise EmptyBatchError()
    stems = parse_names(submission.names_text)
    entries = pair(submission.items, dedupe(stems))
    report_lines.append(f"[*] 发现 {len(entries)} 个文件，准备打包...")

    for item, stem, entry in zip(submission.items, stems, entries):
        report_lines.append(f"  '{item.original_filename}' -> '{entry.name}'")
        if entry.name != stem + item.extension:
            report_lines.append(f"    [!] 名称 '{stem}' 重复，已自动添加后缀")

    placeholders = sum(1 for item in submission.items if item.placeholder)
    if placeholders:
        report_lines.append(f"[!] 有 {placeholders} 个文件缺少原始名称，已自动命名。")

    zip_buffer = assemble(entries, options)
    logger.debug("已生成ZIP包，共 %d 个文件", len(entries))
    return zip_buffer, "\n".join(report_lines)
