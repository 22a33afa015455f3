"""嵌套文档遍历工具."""

from collections.abc import Awaitable, Callable
from typing import Any

StringRewriter = Callable[[str], Awaitable[str]]
SkipPredicate = Callable[[dict[str, Any], str], bool]


async def rewrite_strings(
    root: Any,
    rewrite: StringRewriter,
    skip: SkipPredicate | None = None,
) -> None:
    """
    原地改写嵌套 dict/list 中的所有字符串值.

    按容器对象 id 记录已访问节点，自引用结构不会无限递归。
    非字符串标量保持不变。

    Args:
        root: 根节点（dict 或 list）
        rewrite: 字符串改写函数
        skip: 返回 True 时跳过 dict 中的该 key
    """
    visited: set[int] = set()

    async def walk(node: Any) -> None:
        if not isinstance(node, dict | list):
            return
        if id(node) in visited:
            return
        visited.add(id(node))

        if isinstance(node, list):
            for i, value in enumerate(node):
                if isinstance(value, str):
                    node[i] = await rewrite(value)
                else:
                    await walk(value)
            return

        for key, value in list(node.items()):
            if skip and skip(node, key):
                continue
            if isinstance(value, str):
                node[key] = await rewrite(value)
            else:
                await walk(value)

    await walk(root)
