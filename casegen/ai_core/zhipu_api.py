from typing import List, Dict, Any, Optional
import asyncio
from langchain_community.chat_models import ChatZhipuAI
from langchain_core.messages import HumanMessage, AIMessage, SystemMessage
from casegen.config.settings import settings
from casegen.logger.logger import logger
from .errors import AIGenerationError

class ZhipuAI:
    """智谱AI API封装，作为未配置自定义模型时的默认模型"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        temperature: Optional[float] = None
    ):
        """初始化智谱AI客户端"""
        self.api_key = api_key or settings.ai.AI_ZHIPU_API_KEY
        if not self.api_key:
            raise AIGenerationError("未配置默认AI模型，请设置 AI_ZHIPU_API_KEY 或添加自定义模型")

        self.model_name = model_name or settings.ai.AI_ZHIPU_MODEL_CHAT
        self.chat_model = ChatZhipuAI(
            api_key=self.api_key,
            model_name=self.model_name,
            temperature=settings.ai.AI_TEMPERATURE if temperature is None else temperature,
            streaming=False
        )
        logger.info(f"初始化AI客户端完成，对话模型: {self.model_name}")

    def _convert_messages(self, messages: List[Dict[str, Any]]) -> List[Any]:
        """转换消息格式为LangChain格式"""
        message_map = {
            "system": SystemMessage,
            "user": HumanMessage,
            "assistant": AIMessage
        }
        return [message_map[msg["role"]](content=msg["content"])
                for msg in messages if msg["role"] in message_map]

    async def chat(
        self,
        messages: List[Dict[str, str]],
        timeout: Optional[int] = None
    ) -> str:
        """发送聊天请求

        Args:
            messages: 消息列表
            timeout: 超时时间（秒）

        Returns:
            str: 响应内容
        """
        timeout = timeout or settings.ai.AI_REQUEST_TIMEOUT
        logger.info(f"发送聊天请求, 模型: {self.model_name}")

        try:
            response = await asyncio.wait_for(
                self.chat_model.ainvoke(self._convert_messages(messages)),
                timeout=timeout
            )
        except asyncio.TimeoutError as e:
            logger.error(f"请求超时: {timeout}秒")
            raise AIGenerationError(f"智谱AI请求超时({timeout}秒)") from e
        except Exception as e:
            logger.error(f"请求失败: {str(e)}")
            raise AIGenerationError(f"智谱AI请求失败: {str(e)}") from e

        result = response.content if isinstance(response, AIMessage) else response
        if not result:
            logger.error("响应内容为空")
            raise AIGenerationError("AI返回内容为空")
        return result
