from __future__ import annotations


class ApiCallError(Exception):
    def __init__(
        self,
        method: str,
        description: str,
        *,
        code: int | None = None,
    ) -> None:
        super().__init__(description)
        self.method = method
        self.code = code
        self.description = description

    @classmethod
    def provider(cls, method: str, code: int, message: str) -> "ApiCallError":
        return cls(
            method,
            f"An API call to method '{method}' failed due to an API error "
            f"#{code}: {message}",
            code=code,
        )

    @classmethod
    def unknown(cls, method: str, raw: str) -> "ApiCallError":
        return cls(
            method,
            f"An API call to method '{method}' failed due to an unknown API "
            f"error. The API responded with: {raw}",
        )


class ApiTransportError(ApiCallError):
    @classmethod
    def transport(cls, method: str, detail: str) -> "ApiTransportError":
        return cls(method, f"An API call to method '{method}' failed: {detail}")
