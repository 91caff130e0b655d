from dishka import AsyncContainer, make_async_container

from idlink.config import Config
from idlink.domain.auth.util.di import AuthProvider
from idlink.infrastructure.auth import AuthInfraProvider
from idlink.infrastructure.persistence import PersistenceProvider
from idlink.util.di.scope import Scope


def create_container(config: Config | None = None) -> AsyncContainer:
    # Pydantic Settings populates from env vars at runtime
    if config is None:
        config = Config()  # type: ignore[call-arg]

    return make_async_container(
        PersistenceProvider(),
        AuthProvider(),
        AuthInfraProvider(),
        context={Config: config},
        scopes=Scope,  # type: ignore[arg-type]  # Custom scope class
    )
