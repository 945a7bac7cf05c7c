"""看板异常体系

存储层异常在到达展示层之前必须转换为以下类别之一：
校验错误、订阅错误、变更派发错误。引用缺失不是错误，以占位符渲染。
"""


class BoardError(Exception):
    """看板基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可通过重试或等待新快照恢复
        """
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable


class TaskValidationError(BoardError):
    """字段级校验失败 -- 在任何远端调用之前拒绝

    仅在对应字段内联提示，不作为全局失败。
    """

    def __init__(self, field: str, message: str) -> None:
        """
        Args:
            field: 出错字段名
            message: 面向用户的字段级提示
        """
        super().__init__(message, recoverable=True)
        self.field = field


class TaskNotFoundError(BoardError):
    """任务不在当前视图中"""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task with id {task_id} does not exist", recoverable=False)
        self.task_id = task_id


class SubscriptionError(BoardError):
    """单个集合订阅中断（如连接丢失）

    不会拆除其他订阅；视图继续提供最后一次有效结果。
    """

    def __init__(self, collection: str, cause: Exception) -> None:
        """
        Args:
            collection: 出错的集合名
            cause: 原始异常
        """
        super().__init__(
            f"Subscription to {collection} failed: {type(cause).__name__}",
            recoverable=True,
        )
        self.collection = collection
        self.cause = cause


class MutationDispatchError(BoardError):
    """远端写入被拒绝 -- 触发乐观变更撤销"""

    def __init__(
        self,
        mutation_id: str,
        task_id: str,
        field: str,
        cause: Exception,
    ) -> None:
        super().__init__(
            f"Remote update of {field} on task {task_id} failed: {type(cause).__name__}",
            recoverable=True,
        )
        self.mutation_id = mutation_id
        self.task_id = task_id
        self.field = field
        self.cause = cause


class DocumentNotFoundError(BoardError):
    """存储层：目标文档不存在"""

    def __init__(self, collection: str, doc_id: str) -> None:
        super().__init__(f"Document {collection}/{doc_id} does not exist", recoverable=False)
        self.collection = collection
        self.doc_id = doc_id
