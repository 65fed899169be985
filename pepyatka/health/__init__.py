from pepyatka.health.router import router


__all__ = ["router"]
