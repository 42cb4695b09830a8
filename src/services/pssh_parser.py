# src/services/pssh_parser.py

import base64
import binascii
import struct
import uuid
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import List, Tuple

from errors import DRMExtractionError

WIDEVINE_SYSTEM_ID = uuid.UUID("edef8ba9-79d6-4ace-a3c8-27dcd51d21ed")

# box 头: size(4) + type(4) + version(1) + flags(3) + system_id(16)
_HEADER_SIZE = 28


@dataclass(frozen=True)
class PsshBox:
    version: int
    system_id: uuid.UUID
    key_ids: Tuple[uuid.UUID, ...]
    data: bytes
    raw: bytes


def _local_name(tag: str) -> str:
    """去掉 XML 命名空间前缀，例如 '{urn:mpeg:cenc:2013}pssh' -> 'pssh'。"""
    return tag.rsplit('}', 1)[-1]


def parse_pssh_box(raw: bytes) -> PsshBox:
    """
    按 ISO BMFF 的 'pssh' box 格式逐字段解析，任何长度不符都视为错误。
    version 1 的 box 在数据之前带有 KID 列表。
    """
    if len(raw) < _HEADER_SIZE + 4:
        raise DRMExtractionError(f"PSSH 数据过短: {len(raw)} 字节")

    size, box_type, version = struct.unpack_from(">I4sB", raw, 0)
    if box_type != b"pssh":
        raise DRMExtractionError(f"不是 pssh box: {box_type!r}")
    if size != len(raw):
        raise DRMExtractionError(f"PSSH 长度不一致: 头部声明 {size}，实际 {len(raw)}")
    if version > 1:
        raise DRMExtractionError(f"不支持的 PSSH 版本: {version}")

    system_id = uuid.UUID(bytes=raw[12:28])
    offset = _HEADER_SIZE

    key_ids: List[uuid.UUID] = []
    if version == 1:
        (kid_count,) = struct.unpack_from(">I", raw, offset)
        offset += 4
        if offset + kid_count * 16 + 4 > len(raw):
            raise DRMExtractionError("PSSH 中的 KID 数量超出数据长度")
        for _ in range(kid_count):
            key_ids.append(uuid.UUID(bytes=raw[offset:offset + 16]))
            offset += 16

    (data_size,) = struct.unpack_from(">I", raw, offset)
    offset += 4
    if offset + data_size != len(raw):
        raise DRMExtractionError("PSSH 数据长度与 box 大小不符")

    return PsshBox(version, system_id, tuple(key_ids), raw[offset:], raw)


def extract_widevine_pssh(manifest_text: str) -> PsshBox:
    """
    在 DASH 清单中查找 Widevine 的 ContentProtection 节点并返回其中的 PSSH。
    找不到时抛出 DRMExtractionError，绝不返回空结果。
    """
    try:
        root = ET.fromstring(manifest_text)
    except ET.ParseError as e:
        raise DRMExtractionError(f"无法解析 DASH 清单: {e}")

    scheme = f"urn:uuid:{WIDEVINE_SYSTEM_ID}"
    for element in root.iter():
        if _local_name(element.tag) != "ContentProtection":
            continue
        if element.get("schemeIdUri", "").strip().lower() != scheme:
            continue

        for child in element:
            if _local_name(child.tag) != "pssh" or not (child.text and child.text.strip()):
                continue
            try:
                raw = base64.b64decode(child.text.strip(), validate=True)
            except binascii.Error as e:
                raise DRMExtractionError(f"PSSH 不是有效的 base64: {e}")

            box = parse_pssh_box(raw)
            if box.system_id != WIDEVINE_SYSTEM_ID:
                raise DRMExtractionError(f"PSSH 的 system id 不是 Widevine: {box.system_id}")
            return box

    raise DRMExtractionError("清单中没有找到 Widevine PSSH。")
