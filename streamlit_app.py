# 文件名: streamlit_app.py

import logging
import os
import sys
import zipfile

import streamlit as st

from previews import DEFAULT_THUMBNAIL_SIZE, open_previews
from renamer import (
    ARCHIVE_NAME,
    ArchiveOptions,
    AssemblyError,
    BatchState,
    BatchSubmission,
    CountMismatchError,
    EmptyBatchError,
    batch_state,
    load_uploads,
    rename_files_in_memory,
)

LOGGER_NAMES = ("renamer", "previews", "streamlit_app")


def setup_logging(debug):
    """配置项目日志；Streamlit 每次重跑都会调用，先清掉旧的 handler"""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S"
    ))
    for name in LOGGER_NAMES:
        logger = logging.getLogger(name)
        logger.handlers.clear()
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG if debug else logging.WARNING)


# --- 页面基础配置 ---
st.set_page_config(
    page_title="图片批量重命名工具",
    page_icon="🗂️",
    layout="centered"
)

st.title("🗂️ 图片批量重命名与打包")
st.caption("按顺序为上传的图片指定新名称，自动清理非法字符、处理重名，并打包为ZIP下载。")

# --- 侧边栏配置 ---
with st.sidebar:
    st.header("打包配置")

    compression_choice = st.selectbox("压缩方式", ("DEFLATED", "STORED"))
    compress_level = None
    if compression_choice == "DEFLATED":
        compress_level = st.slider("压缩等级", 0, 9, 6)
    archive_name = st.text_input("ZIP文件名", ARCHIVE_NAME).strip() or ARCHIVE_NAME
    thumbnail_size = st.slider("预览尺寸", 50, 300, DEFAULT_THUMBNAIL_SIZE, 10)
    debug = st.checkbox("调试日志", value=os.environ.get("RENAMER_DEBUG") == "1")

    archive_options = ArchiveOptions(
        archive_name=archive_name,
        compression=zipfile.ZIP_DEFLATED if compression_choice == "DEFLATED" else zipfile.ZIP_STORED,
        compress_level=compress_level,
    )

setup_logging(debug)
log = logging.getLogger("streamlit_app")

names_text = st.text_area(
    "名称 (每行一个):",
    height=160,
    placeholder="输入新的文件名，顺序与上传的图片一致...",
    key="names_text"
)

uploaded_files = st.file_uploader(
    "上传图片",
    type=["png", "jpg", "jpeg", "gif", "webp", "bmp", "tiff"],
    accept_multiple_files=True,
    key="renamer_uploader"
)

items = load_uploads(uploaded_files)
submission = BatchSubmission(items=items, names_text=names_text)

if any(item.placeholder for item in items):
    st.warning("部分文件缺少名称，已自动重命名。")

# 失败后不自动重试，下一次运行从当前输入重新推断状态
st.session_state["batch_state"] = batch_state(submission)

if st.button("打包为ZIP下载", use_container_width=True):
    st.session_state["batch_state"] = BatchState.ASSEMBLING
    with st.spinner("正在重命名并打包..."):
        try:
            renamed_zip_buffer, report = rename_files_in_memory(submission, archive_options)
        except EmptyBatchError as e:
            st.session_state["batch_state"] = BatchState.FAILED
            st.error(str(e))
        except CountMismatchError as e:
            st.session_state["batch_state"] = BatchState.FAILED
            st.error(str(e))
        except AssemblyError as e:
            st.session_state["batch_state"] = BatchState.FAILED
            log.error("打包失败: %s", e)
            st.error("生成ZIP包时出错，请重试。")
        else:
            st.session_state["batch_state"] = BatchState.DOWNLOADED

            st.subheader("重命名报告:")
            st.text(report)

            st.download_button(
                label="📥 下载已重命名的图片 (ZIP包)",
                data=renamed_zip_buffer,
                file_name=archive_options.archive_name,
                mime="application/zip",
                use_container_width=True
            )

# --- 已上传文件列表 ---
if items:
    st.subheader(f"已上传文件 ({len(items)})")
    with open_previews(items, thumbnail_size) as previews:
        for preview in previews:
            col1, col2 = st.columns([1, 3])
            if preview.image is not None:
                col1.image(preview.image, width=thumbnail_size)
            else:
                col1.text("无预览")
            col2.text(preview.caption)
