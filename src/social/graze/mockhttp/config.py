"""
Configuration Module for mockhttp

This module defines the configuration for the mock request/response pair: process-wide
defaults loaded through pydantic-settings, and the per-instance option records accepted by
the MockRequest and MockResponse constructors.

The configuration follows these principles:
1. Environment-based defaults that match a loopback HTTP/1.0 connection
2. Explicit option records with named fields instead of property-bag merging
3. camelCase spellings accepted as aliases so fixtures ported from other stacks keep working

Settings are read from environment variables with the MOCKHTTP_ prefix, for example
MOCKHTTP_REMOTE_PORT=8080.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Process-wide defaults for mock requests and responses.

    Each field can be overridden with an environment variable carrying the MOCKHTTP_
    prefix. Instances are cheap; the mock constructors create one when none is given.
    """

    model_config = SettingsConfigDict(env_prefix="MOCKHTTP_")

    remote_address: str = "127.0.0.1"
    """
    Default remote address reported by MockRequest.connection.
    Set with MOCKHTTP_REMOTE_ADDRESS environment variable.
    """

    remote_port: int = 51501
    """
    Default remote port reported by MockRequest.connection.
    Set with MOCKHTTP_REMOTE_PORT environment variable.
    """

    http_version: str = "1.0"
    """
    Default protocol version of a MockRequest, in "<major>.<minor>" form.
    Set with MOCKHTTP_HTTP_VERSION environment variable.
    """

    high_water_mark: int = 16384
    """
    Default chunk size hint, in bytes, for reading a MockRequest body.
    Set with MOCKHTTP_HIGH_WATER_MARK environment variable.
    """

    send_date: bool = True
    """
    Whether MockResponse.end stamps a Date header.
    Set with MOCKHTTP_SEND_DATE environment variable.
    """


class ConnectionOverrides(BaseModel):
    """Partial connection info; unset fields keep the Settings defaults."""

    remote_address: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("remote_address", "remoteAddress"),
    )
    remote_port: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("remote_port", "remotePort"),
    )


class RequestOptions(BaseModel):
    """
    Options accepted by MockRequest.

    Attributes:
        high_water_mark: Chunk size hint for reads; Settings.high_water_mark when unset
        url: Request target, should start with "/"
        method: HTTP method
        headers: Unordered header record, installed one entry at a time
        raw_headers: Ordered [name, value, name, value, ...] list; wins over headers
        http_version: Protocol version in "<major>.<minor>" form
        trailers: Trailing headers
        connection: Overrides merged onto the default connection info
        buffer: Request body served by the readable side
        emit_close: Fire the close hooks once this many bytes have been emitted
    """

    high_water_mark: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("high_water_mark", "highWaterMark"),
    )
    url: str = "/"
    method: str = "GET"
    headers: Optional[Dict[str, Any]] = None
    raw_headers: Optional[List[Any]] = Field(
        default=None,
        validation_alias=AliasChoices("raw_headers", "rawHeaders"),
    )
    http_version: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("http_version", "httpVersion"),
    )
    trailers: Dict[str, Any] = Field(default_factory=dict)
    connection: Optional[ConnectionOverrides] = None
    buffer: Optional[bytes] = None
    emit_close: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("emit_close", "emitClose"),
    )

    @field_validator("raw_headers", mode="after")
    @classmethod
    def discard_unpaired_raw_headers(cls, v: Optional[List[Any]]) -> Optional[List[Any]]:
        """
        An odd-length raw header list cannot be split into name/value pairs.

        It is treated as absent so the unordered headers record is used instead.
        """
        if v is not None and len(v) % 2 != 0:
            logger.debug("Discarding raw headers with odd length %d", len(v))
            return None
        return v

    @field_validator("buffer", mode="before")
    @classmethod
    def encode_text_buffer(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.encode("utf-8")
        if isinstance(v, (bytearray, memoryview)):
            return bytes(v)
        return v

    @classmethod
    def coerce(
        cls,
        options: Union[str, "RequestOptions", Dict[str, Any], None] = None,
        **kwargs: Any,
    ) -> "RequestOptions":
        """
        Build request options from the shapes MockRequest accepts.

        A bare string is shorthand for the url. Keyword arguments overlay the options.
        """
        if isinstance(options, str):
            options = {"url": options}
        elif isinstance(options, RequestOptions):
            options = {
                name: getattr(options, name) for name in options.model_fields_set
            }
        return cls.model_validate({**(options or {}), **kwargs})


class ResponseOptions(BaseModel):
    """
    Options accepted by MockResponse.

    Attributes:
        high_water_mark: Buffer size hint for the writable side
        on_end: Called when the end-of-response signal fires
        on_finish: Called when every queued write has been flushed
        send_date: Stamp a Date header on end; Settings.send_date when unset
    """

    high_water_mark: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("high_water_mark", "highWaterMark"),
    )
    on_end: Optional[Callable[[], Any]] = Field(
        default=None,
        validation_alias=AliasChoices("on_end", "onEnd"),
    )
    on_finish: Optional[Callable[[], Any]] = Field(
        default=None,
        validation_alias=AliasChoices("on_finish", "onFinish"),
    )
    send_date: Optional[bool] = Field(
        default=None,
        validation_alias=AliasChoices("send_date", "sendDate"),
    )

    @classmethod
    def coerce(
        cls,
        options: Union["ResponseOptions", Dict[str, Any], None] = None,
        **kwargs: Any,
    ) -> "ResponseOptions":
        if isinstance(options, ResponseOptions):
            options = {
                name: getattr(options, name) for name in options.model_fields_set
            }
        return cls.model_validate({**(options or {}), **kwargs})
