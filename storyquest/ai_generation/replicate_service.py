"""
Integration with Replicate for StoryQuest page illustrations.
"""

from __future__ import annotations

import base64
import os
from collections.abc import Iterable as IterableABC
from typing import Any, Callable

import replicate
import requests
from replicate.exceptions import ReplicateException

from storyquest.common import ImageUnavailable, TransportError

DEFAULT_IMAGE_MODEL = "google/imagen-4"
DEFAULT_MIME_TYPE = "image/png"


def _build_imagen_input(*, prompt: str) -> dict[str, Any]:
    return {
        "prompt": prompt,
        "aspect_ratio": "1:1",
        "output_format": "png",
    }


def _build_flux_schnell_input(*, prompt: str) -> dict[str, Any]:
    return {
        "prompt": prompt,
        "num_outputs": 1,
        "aspect_ratio": "1:1",
        "output_format": "png",
    }


def _build_flux_pro_input(*, prompt: str) -> dict[str, Any]:
    return {
        "prompt": prompt,
        "aspect_ratio": "1:1",
        "output_format": "png",
        "safety_tolerance": 2,
    }


_MODEL_INPUT_BUILDERS: dict[str, Callable[..., dict[str, Any]]] = {
    "google/imagen-4": _build_imagen_input,
    "google/imagen-4-fast": _build_imagen_input,
    "black-forest-labs/flux-schnell": _build_flux_schnell_input,
    "black-forest-labs/flux-1.1-pro": _build_flux_pro_input,
}


def _build_replicate_input_payload(*, model_identifier: str, prompt: str) -> dict[str, Any]:
    normalized_identifier = model_identifier.strip().lower()
    builder = _MODEL_INPUT_BUILDERS.get(normalized_identifier)
    if builder is None and ":" in normalized_identifier:
        base_identifier = normalized_identifier.split(":", maxsplit=1)[0]
        builder = _MODEL_INPUT_BUILDERS.get(base_identifier)
    if builder is None:
        supported_models = ", ".join(sorted(set(_MODEL_INPUT_BUILDERS)))
        raise ValueError(
            "Model identifier "
            f"'{model_identifier}' is not configured with a default input payload. "
            f"Supported models: {supported_models}."
        )

    return builder(prompt=prompt)


class ReplicateIllustrator:
    """
    Convenience wrapper around the Replicate client that returns one image per prompt.

    Parameters
    ----------
    api_token:
        Replicate API token. Falls back to ``REPLICATE_API_TOKEN`` environment variable.
    model_identifier:
        Model string in the ``owner/model`` or ``owner/model:version`` format. Falls back
        to ``REPLICATE_MODEL`` and then to ``google/imagen-4``.
    client:
        Optional pre-configured :class:`replicate.Client`. Mainly useful for testing.
    session:
        Optional :class:`requests.Session` used to download image URLs.
    request_timeout:
        Seconds to wait when downloading a generated image.
    """

    def __init__(
        self,
        *,
        api_token: str | None = None,
        model_identifier: str | None = None,
        client: replicate.Client | None = None,
        session: requests.Session | None = None,
        request_timeout: float = 60.0,
    ) -> None:
        self._api_token = api_token or os.getenv("REPLICATE_API_TOKEN")
        if not self._api_token and not client:
            raise ValueError(
                "Replicate API token is required. Set REPLICATE_API_TOKEN or pass api_token."
            )

        self._model_identifier = (
            model_identifier or os.getenv("REPLICATE_MODEL") or DEFAULT_IMAGE_MODEL
        )
        self._client = client or replicate.Client(api_token=self._api_token)
        self._session = session or requests.Session()
        self._request_timeout = request_timeout

    @property
    def model_identifier(self) -> str:
        """Return the model identifier currently used."""
        return self._model_identifier

    def generate_image(self, prompt: str, **model_kwargs: Any) -> str:
        """
        Generate a single illustration and return it as a base64 ``data:`` URL.

        Raises
        ------
        TransportError
            When Replicate or the image download fails.
        ImageUnavailable
            When the model answers without any image.
        """
        replicate_input = _build_replicate_input_payload(
            model_identifier=self._model_identifier,
            prompt=prompt,
        )
        # Allow the caller to tweak model-specific knobs (e.g., seed).
        replicate_input.update(model_kwargs)

        try:
            raw_output = self._client.run(self._model_identifier, input=replicate_input)
        except ReplicateException as exc:
            raise TransportError(f"Replicate request failed: {exc}") from exc

        outputs = normalize_image_outputs(raw_output)
        if not outputs:
            raise ImageUnavailable("The image model returned no image.")

        return self._encode_output(outputs[0])

    def _encode_output(self, output: Any) -> str:
        if isinstance(output, bytes):
            return to_data_url(output)

        if hasattr(output, "read"):
            return to_data_url(output.read())

        reference = str(output).strip()
        if reference.startswith("data:"):
            return reference
        if not reference.lower().startswith(("http://", "https://")):
            raise ImageUnavailable(f"Unsupported image output reference: {reference[:80]!r}")

        try:
            response = self._session.get(reference, timeout=self._request_timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise TransportError(f"Failed to download generated image: {exc}") from exc

        if not response.content:
            raise ImageUnavailable("Downloaded image was empty.")

        content_type = response.headers.get("Content-Type", "").split(";")[0].strip()
        mime_type = content_type if content_type.startswith("image/") else DEFAULT_MIME_TYPE
        return to_data_url(response.content, mime_type=mime_type)


def to_data_url(data: bytes, *, mime_type: str = DEFAULT_MIME_TYPE) -> str:
    if not data:
        raise ImageUnavailable("Image payload was empty.")
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def decode_data_url(data_url: str) -> bytes:
    """
    Return the raw bytes of a base64 ``data:`` URL.
    """
    header, separator, encoded = data_url.partition(",")
    if not separator or not header.startswith("data:") or ";base64" not in header:
        raise ValueError("Expected a base64 data URL.")
    return base64.b64decode(encoded)


def normalize_image_outputs(raw: Any) -> list[Any]:
    """
    Normalize Replicate outputs into a flat list of URL strings, bytes, or file outputs.
    """

    if raw is None:
        return []

    if isinstance(raw, (str, bytes)):
        return [raw] if raw else []

    if hasattr(raw, "read"):
        return [raw]

    if isinstance(raw, IterableABC):
        collected = list(raw)
        if not collected:
            return []

        if all(isinstance(item, str) and len(item) == 1 for item in collected):
            return ["".join(collected)]

        normalized: list[Any] = []
        for item in collected:
            if isinstance(item, (str, bytes)):
                if item:
                    normalized.append(item)
            elif hasattr(item, "read"):
                normalized.append(item)
            elif isinstance(item, IterableABC):
                normalized.extend(normalize_image_outputs(item))
            elif item is not None:
                normalized.append(str(item))
        return normalized

    return [str(raw)]
