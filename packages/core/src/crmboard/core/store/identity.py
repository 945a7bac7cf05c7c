"""IdentityProvider 实现"""


class StaticIdentityProvider:
    """固定操作者 -- 单用户部署与测试使用"""

    def __init__(self, actor_id: str) -> None:
        if not actor_id:
            raise ValueError("actor_id must not be empty")
        self._actor_id = actor_id

    def current_actor_id(self) -> str:
        return self._actor_id
