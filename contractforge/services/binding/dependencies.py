"""Default dependency sets for the server and client bindings."""

from __future__ import annotations

from ...models.artifacts import Dependency, DependencyScope, DependencySet

IMPL = DependencyScope.IMPLEMENTATION
COMPILE_ONLY = DependencyScope.COMPILE_ONLY

SPRING_BOOT_VERSION = "3.3.0"
RETROFIT_VERSION = "2.11.0"
OKHTTP_VERSION = "4.12.0"

BASE_DEPENDENCIES = DependencySet(dependencies=(
    Dependency(group="org.openapitools", artifact="jackson-databind-nullable", version="0.2.6"),
))

SERVER_DEPENDENCIES = DependencySet(dependencies=(
    Dependency(group="org.springframework.boot", artifact="spring-boot-starter-web", version=SPRING_BOOT_VERSION),
    Dependency(group="org.springframework.boot", artifact="spring-boot-starter-validation", version=SPRING_BOOT_VERSION),
    Dependency(group="io.swagger.core.v3", artifact="swagger-annotations", version="2.2.22", scope=COMPILE_ONLY),
    Dependency(group="org.springdoc", artifact="springdoc-openapi-starter-webmvc-ui", version="2.5.0", scope=COMPILE_ONLY),
))

CLIENT_DEPENDENCIES = DependencySet(dependencies=(
    Dependency(group="com.squareup.retrofit2", artifact="retrofit", version=RETROFIT_VERSION),
    Dependency(group="com.squareup.retrofit2", artifact="converter-scalars", version=RETROFIT_VERSION),
    Dependency(group="com.squareup.retrofit2", artifact="converter-kotlinx-serialization", version=RETROFIT_VERSION),
    Dependency(group="com.squareup.okhttp3", artifact="okhttp", version=OKHTTP_VERSION),
    Dependency(group="com.squareup.okhttp3", artifact="logging-interceptor", version=OKHTTP_VERSION),
    Dependency(group="org.jetbrains.kotlinx", artifact="kotlinx-serialization-json", version="1.7.1"),
    Dependency(group="org.jetbrains.kotlinx", artifact="kotlinx-coroutines-core", version="1.8.1"),
))

BINDING_DEPENDENCIES: dict[str, DependencySet] = {
    "server": SERVER_DEPENDENCIES,
    "client": CLIENT_DEPENDENCIES,
}
