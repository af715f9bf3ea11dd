"""Core 异常体系

四类错误直接抛给调用方，由边界层映射为 HTTP 状态码：
NotFound(404) / Unauthorized(403) / InvalidState(409) / Validation(400)。
"""


class AgentQueueError(Exception):
    """Core 包基础异常"""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500

    def __init__(self, message: str) -> None:
        """
        Args:
            message: 错误描述（对外可见）
        """
        super().__init__(message)
        self.message = message


class NotFoundError(AgentQueueError):
    """引用的 Task / Conversation / 分享令牌不存在"""

    code = "NOT_FOUND"
    status_code = 404


class UnauthorizedError(AgentQueueError):
    """请求者不是资源所有者"""

    code = "UNAUTHORIZED"
    status_code = 403


class InvalidStateError(AgentQueueError):
    """操作违反状态约束，例如分享未完成的任务、终态任务再次流转"""

    code = "INVALID_STATE"
    status_code = 409


class PayloadValidationError(AgentQueueError):
    """输入格式或字段组合不合法"""

    code = "VALIDATION_ERROR"
    status_code = 400


class TaskNotFoundError(NotFoundError):
    """Task 不存在"""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task with id {task_id} does not exist")
        self.task_id = task_id
