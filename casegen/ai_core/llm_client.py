from typing import Any, Dict, List, Optional, Tuple
import httpx
from casegen.config.settings import settings
from casegen.logger.logger import logger
from .errors import AIGenerationError
from .zhipu_api import ZhipuAI

# 各服务商的默认接口地址与模型
PROVIDER_DEFAULTS: Dict[str, Tuple[str, str]] = {
    "deepseek": ("https://api.deepseek.com/v1/chat/completions", "deepseek-chat"),
    "openai": ("https://api.openai.com/v1/chat/completions", "gpt-4"),
    "anthropic": ("https://api.anthropic.com/v1/messages", "claude-3-sonnet-20240229"),
}

PROVIDER_NAMES = {
    "deepseek": "DeepSeek",
    "openai": "OpenAI",
    "anthropic": "Anthropic",
    "custom": "Custom",
}

ANTHROPIC_VERSION = "2023-06-01"
ANTHROPIC_MAX_TOKENS = 4096

class LLMClient:
    """用户配置模型的HTTP客户端

    deepseek/openai/custom 使用 OpenAI 兼容的 chat completions 接口，
    anthropic 使用 Messages 接口。
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.timeout = timeout or settings.ai.AI_REQUEST_TIMEOUT
        self.transport = transport

    @staticmethod
    def resolve_endpoint(model: Any) -> Tuple[str, str]:
        """获取模型的接口地址和模型ID"""
        provider = (model.provider or "custom").lower()
        default_url, default_model = PROVIDER_DEFAULTS.get(provider, ("", ""))
        url = model.api_url or default_url
        model_id = model.model_id or default_model
        if not url:
            raise AIGenerationError("自定义模型需要配置API地址")
        if not model_id:
            raise AIGenerationError("模型需要配置模型ID")
        return url, model_id

    async def chat(self, model: Any, messages: List[Dict[str, str]]) -> str:
        """发送对话请求

        Args:
            model: 模型配置，需包含 provider/model_id/api_url/api_key
            messages: 消息列表

        Returns:
            str: 模型返回的文本
        """
        if not model.api_key:
            raise AIGenerationError(f"模型 {model.name} 未配置API密钥")

        provider = (model.provider or "custom").lower()
        url, model_id = self.resolve_endpoint(model)
        logger.info(f"调用AI模型: {model.name}, 服务商: {provider}, 模型: {model_id}")

        if provider == "anthropic":
            return await self._chat_anthropic(url, model_id, model.api_key, messages)
        return await self._chat_openai_compatible(provider, url, model_id, model.api_key, messages)

    async def _post(self, provider: str, url: str, headers: Dict[str, str], payload: Dict[str, Any]) -> Dict[str, Any]:
        name = PROVIDER_NAMES.get(provider, provider)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"{name} API请求失败: {str(e)}")
            raise AIGenerationError(f"{name} API请求失败: {str(e)}") from e

        if response.status_code >= 400:
            logger.error(f"{name} API错误: {response.status_code} {response.text}")
            raise AIGenerationError(f"{name} API error: {response.status_code} {response.text}")

        try:
            return response.json()
        except ValueError as e:
            raise AIGenerationError(f"{name} API返回了无效的JSON") from e

    async def _chat_openai_compatible(
        self,
        provider: str,
        url: str,
        model_id: str,
        api_key: str,
        messages: List[Dict[str, str]]
    ) -> str:
        data = await self._post(
            provider,
            url,
            {
                "Content-Type": "application/json",
                "Authorization": f"Bearer {api_key}",
            },
            {
                "model": model_id,
                "messages": messages,
                "temperature": settings.ai.AI_TEMPERATURE,
            },
        )
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise AIGenerationError("AI返回格式错误") from e
        if not content:
            raise AIGenerationError("AI返回内容为空")
        return content

    async def _chat_anthropic(
        self,
        url: str,
        model_id: str,
        api_key: str,
        messages: List[Dict[str, str]]
    ) -> str:
        system = "\n".join(m["content"] for m in messages if m["role"] == "system")
        payload: Dict[str, Any] = {
            "model": model_id,
            "max_tokens": ANTHROPIC_MAX_TOKENS,
            "messages": [m for m in messages if m["role"] != "system"],
        }
        if system:
            payload["system"] = system

        data = await self._post(
            "anthropic",
            url,
            {
                "Content-Type": "application/json",
                "x-api-key": api_key,
                "anthropic-version": ANTHROPIC_VERSION,
            },
            payload,
        )
        try:
            content = data["content"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise AIGenerationError("AI返回格式错误") from e
        if not content:
            raise AIGenerationError("AI返回内容为空")
        return content

def model_display_name(model: Optional[Any]) -> str:
    """生成历史中记录的模型名称"""
    if model is None:
        return settings.ai.AI_ZHIPU_MODEL_CHAT
    return model.name

async def invoke_llm(messages: List[Dict[str, str]], model: Optional[Any] = None) -> str:
    """调用大模型

    Args:
        messages: 消息列表
        model: 用户配置的模型，为空时使用内置的智谱模型

    Returns:
        str: 模型返回的文本
    """
    if model is None:
        return await ZhipuAI().chat(messages)
    return await LLMClient().chat(model, messages)
