from typing import Optional
import re

HELP_TEXT = """📖 内容创作助手

发以下消息触发：
• 写文章 / 开始创作 → 选方向、选题、确认大纲，自动写成文章并存为飞书文档
• 帮助 → 显示此菜单"""

_MENTION = re.compile(r"@\S+")
_HELP = re.compile(r"^(帮助|help)$", re.IGNORECASE)
_WRITE = re.compile(r"^(写文章|开始创作|创作)")


def parse_command(text: str) -> Optional[str]:
    """Map a chat message to "help", "write" or None"""

    cleaned = _MENTION.sub("", text or "").strip()
    if _HELP.match(cleaned):
        return "help"
    if _WRITE.match(cleaned):
        return "write"
    return None
