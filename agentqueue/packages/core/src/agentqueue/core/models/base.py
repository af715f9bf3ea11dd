"""模型基类 -- 对外 JSON 使用 camelCase 字段名

Python 侧属性保持 snake_case，序列化时通过 by_alias 输出 camelCase。
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """camelCase 别名基类，构造时同时接受 snake_case 与 camelCase"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> dict:
        """序列化为对外 JSON 结构（camelCase + ISO-8601 时间）"""
        return self.model_dump(mode="json", by_alias=True)
