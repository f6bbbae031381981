"""工具注册表"""

from typing import Any

from pydantic import BaseModel, ValidationError

from ..schemas import ToolDefinition, ToolInputSchema


class ToolError(Exception):
    """工具调用错误基类"""

    def __init__(self, tool_name: str, message: str):
        super().__init__(message)
        self.tool_name = tool_name


class UnknownToolError(ToolError, ValueError):
    """工具不存在"""

    def __init__(self, tool_name: str):
        super().__init__(tool_name, f"工具不存在: {tool_name}")


class ToolValidationError(ToolError):
    """参数校验失败，errors 为 [{"field": "a.b", "message": "..."}]"""

    def __init__(self, tool_name: str, errors: list[dict[str, str]]):
        details = "; ".join(f"{e['field'] or '<root>'}: {e['message']}" for e in errors)
        super().__init__(tool_name, f"参数校验失败 {tool_name}: {details}")
        self.errors = errors

    @classmethod
    def from_pydantic(cls, tool_name: str, exc: ValidationError) -> "ToolValidationError":
        return cls(tool_name, [
            {
                "field": ".".join(str(part) for part in error["loc"]),
                "message": error["msg"],
            }
            for error in exc.errors()
        ])


class ToolRegistry:
    """工具注册表 - 管理所有可用的 MCP 工具

    注册完成后只读，可在并发调用间共享。
    """

    def __init__(self):
        self._tools: dict[str, "BaseTool"] = {}

    def register(self, tool: "BaseTool") -> None:
        """注册工具"""
        self._tools[tool.name] = tool

    def get(self, name: str) -> "BaseTool | None":
        """获取工具"""
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def list_tools(self) -> list[ToolDefinition]:
        """列出所有工具定义"""
        return [tool.get_definition() for tool in self._tools.values()]

    async def call(self, name: str, arguments: dict[str, Any] | None) -> Any:
        """调用工具

        Args:
            name: 工具名称
            arguments: 未校验的原始参数

        Returns:
            工具执行结果

        Raises:
            UnknownToolError: 工具不存在
            ToolValidationError: 参数校验失败（不会执行工具）
        """
        tool = self._tools.get(name)
        if not tool:
            raise UnknownToolError(name)
        args = tool.validate(arguments)
        return await tool.execute(args)


class BaseTool:
    """工具基类"""

    name: str = ""
    description: str = ""
    args_model: type[BaseModel] = BaseModel

    def get_input_schema(self) -> ToolInputSchema:
        """获取输入 Schema"""
        return ToolInputSchema(**self.args_model.model_json_schema())

    def get_definition(self) -> ToolDefinition:
        """获取工具定义"""
        return ToolDefinition(
            name=self.name,
            description=self.description,
            inputSchema=self.get_input_schema(),
        )

    def validate(self, arguments: dict[str, Any] | None) -> BaseModel:
        """校验原始参数并填充默认值

        Raises:
            ToolValidationError: 参数不符合 Schema
        """
        try:
            return self.args_model.model_validate(arguments if arguments is not None else {})
        except ValidationError as e:
            raise ToolValidationError.from_pydantic(self.name, e) from e

    async def execute(self, args: BaseModel) -> Any:
        """执行工具

        Args:
            args: 已校验的参数

        Returns:
            执行结果
        """
        raise NotImplementedError
