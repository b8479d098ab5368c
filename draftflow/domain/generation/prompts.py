"""Prompt templates for each generation step.

Token budgets are sized for the longest acceptable answer of each step.
"""

TOPICS_MAX_TOKENS = 300
OUTLINE_MAX_TOKENS = 400
ARTICLE_MAX_TOKENS = 2000

TOPICS_PROMPT = """你是一个内容策划专家。针对「{direction}」方向，生成 3 个适合在职场社交媒体发布的选题标题。
要求：
- 每个标题独占一行，前面加序号"1. 2. 3."
- 标题要有吸引力，能引发职场人共鸣
- 不超过 25 字
- 只输出 3 个标题，不要其他内容"""

OUTLINE_PROMPT = """你是一个内容策划专家。为以下选题生成一个文章大纲：
选题：{topic}

要求：
- 3-5 个章节
- 每个章节一行，用"## "开头
- 每章节后面加 1 句简短说明（括号内）
- 只输出大纲，不要其他内容"""

ARTICLE_PROMPT = """你是一个专业的职场内容作者。根据以下选题和大纲，写一篇完整的文章。

选题：{topic}

大纲：
{outline}

要求：
- 总字数 800-1200 字
- 语言亲切自然，有洞察力，避免空话套话
- 每个章节充实展开，有具体例子或数据支撑
- 结尾有明确的行动建议或总结
- 直接输出文章正文，不要重复标题"""


def build_topics_prompt(direction: str) -> str:
    return TOPICS_PROMPT.format(direction=direction)


def build_outline_prompt(topic: str) -> str:
    return OUTLINE_PROMPT.format(topic=topic)


def build_article_prompt(topic: str, outline: str) -> str:
    return ARTICLE_PROMPT.format(topic=topic, outline=outline)
