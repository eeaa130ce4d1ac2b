from middleware.request_lifecycle import RequestLifecycleMiddleware

__all__ = ["RequestLifecycleMiddleware"]
