from typing import Optional


class WorkflowError(Exception):
    """Base class for recoverable workflow failures shown to the user"""

    user_message: str = "出错了，请稍后重试"

    def __init__(self, message: str = "", user_message: Optional[str] = None):
        super().__init__(message or self.user_message)
        if user_message:
            self.user_message = user_message


class IllegalTransition(WorkflowError):
    """Action is not legal for the session's current state"""

    user_message = "当前步骤不支持这个操作"

    def __init__(self, state: str, action: str, message: Optional[str] = None):
        self.state = state
        self.action = action
        super().__init__(message or f"Action '{action}' is not legal in state '{state}'")


class StaleAction(IllegalTransition):
    """Action was produced by a card older than the session's current version"""

    user_message = "这张卡片已过期，请使用最新的卡片"

    def __init__(self, state: str, action: str, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            state,
            action,
            f"Stale action '{action}': card version {expected}, session version {actual}",
        )


class Busy(WorkflowError):
    """Another transition is already in flight for the conversation"""

    user_message = "上一步还在处理中，请稍等"

    def __init__(self, conversation_id: str):
        self.conversation_id = conversation_id
        super().__init__(f"Transition already in flight for {conversation_id}")


class GenerationServiceError(WorkflowError):
    """Text completion call failed or returned no usable text"""

    user_message = "内容生成服务暂时不可用，请重试"


class GenerationParseError(WorkflowError):
    """Completion text could not be parsed into the expected shape"""

    user_message = "生成结果格式异常，请重试"


class PersistenceError(WorkflowError):
    """Generated document could not be stored"""

    user_message = "保存文档失败，请重试"


class MessagingError(WorkflowError):
    """Messaging transport failed to send or update a view"""

    user_message = "消息发送失败"


class TransitionTimeout(WorkflowError):
    """Deferred transition exceeded its deadline and was force-aborted"""

    user_message = "处理超时，请重试"


class InvariantViolation(Exception):
    """A session reached a shape that the workflow never produces"""
