"""
订单BOM段字符串解析

格式: 以 '-' 分隔的记号序列
- 以 'M' 开头的记号开启一个父件段（外壳代码）
- 紧随其后的非 'M' 记号按字符拆分为子件代码

Example:
    "M1-AB-M2" -> 父件M1(子件A, B), 父件M2(无子件)
"""

from typing import List

from prodsim.errors import OrderFormatError
from prodsim.models.enums import PartKind
from prodsim.models.part_model import BomEntry

SECTION_PREFIX = "M"
TOKEN_SEPARATOR = "-"


def parse_order_string(sections: str, size: str) -> List[BomEntry]:
    """
    解析订单BOM段字符串

    Args:
        sections: 段字符串
        size: 尺寸

    Returns:
        父件BOM条目列表（子件挂在 children 中）

    Raises:
        OrderFormatError: 空字符串、缺少尺寸、空记号、子件记号前无父件段
    """
    text = (sections or "").strip()
    if not text:
        raise OrderFormatError("订单段字符串为空")
    if not str(size or "").strip():
        raise OrderFormatError(f"订单 '{text}' 缺少尺寸")

    tokens = [token.strip() for token in text.split(TOKEN_SEPARATOR)]
    if any(not token for token in tokens):
        raise OrderFormatError(f"订单 '{text}' 包含空记号")

    bom: List[BomEntry] = []
    index = 0
    while index < len(tokens):
        token = tokens[index]
        if not token.startswith(SECTION_PREFIX):
            raise OrderFormatError(f"订单 '{text}' 中的子件记号 '{token}' 前没有父件段")

        parent = BomEntry(kind=PartKind.PARENT, code=token, size=size, section=len(bom) + 1)
        if index + 1 < len(tokens) and not tokens[index + 1].startswith(SECTION_PREFIX):
            for code in tokens[index + 1]:
                parent.children.append(
                    BomEntry(kind=PartKind.CHILD, code=code, size=size, section=parent.section)
                )
            index += 1
        bom.append(parent)
        index += 1

    return bom


def count_parts(bom: List[BomEntry]) -> int:
    """BOM展开后的零件总数"""
    return sum(1 + len(entry.children) for entry in bom)
