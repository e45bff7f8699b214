class AIGenerationError(Exception):
    """AI调用或结果解析失败"""
