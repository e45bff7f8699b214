from functools import wraps
import time
from typing import Any, Callable, Optional, TypeVar, ParamSpec
from casegen.logger.logger import logger

P = ParamSpec("P")
R = TypeVar("R")

def handle_exceptions(
    default_return: Any = None,
    log_level: str = "ERROR"
) -> Callable[[Callable[P, R]], Callable[P, Optional[R]]]:
    """尽力而为操作的异常处理装饰器

    只用于失败不影响主流程的操作(如删除本地存储文件)，
    异常记录后返回 default_return。
    """
    def decorator(func: Callable[P, R]) -> Callable[P, Optional[R]]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> Optional[R]:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                logger.opt(exception=e).log(
                    log_level,
                    "{} 执行失败，已忽略: {}: {}",
                    func.__qualname__,
                    type(e).__name__,
                    str(e)
                )
                return default_return
        return wrapper
    return decorator

def _describe_result(result: Any) -> str:
    # 用例生成函数返回列表，记录条数即可
    if isinstance(result, (list, tuple)):
        return f"{len(result)} 条结果"
    return type(result).__name__

def log_function_call(level: str = "DEBUG") -> Callable[[Callable[P, R]], Callable[P, R]]:
    """记录函数耗时和结果条数

    Args:
        level: 正常完成时的日志级别，异常一律按 ERROR 记录
    """
    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    "{} 执行异常, 耗时 {:.3f}秒: {}",
                    func.__name__,
                    time.perf_counter() - start_time,
                    str(e)
                )
                raise
            logger.log(
                level,
                "{} 完成, 耗时 {:.3f}秒, 返回 {}",
                func.__name__,
                time.perf_counter() - start_time,
                _describe_result(result)
            )
            return result
        return wrapper
    return decorator
