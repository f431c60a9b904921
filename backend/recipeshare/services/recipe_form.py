"""
RecipeShare Backend - Recipe Form Decoding
============================================

What:  Turns a multipart recipe submission into typed values.
Why:   Clients send recipes as multipart forms so an image can travel with the
       fields. Every form value arrives as a string; the list fields are JSON.
How:   decode_multipart() splits the form into scalar strings and at most one
       file part. parse_recipe_fields() checks names against RecipeField,
       drops empty values, decodes JSON lists, and validates with pydantic.
Who:   Called by the recipe routes before the pipeline runs.

Decoding rules:
    - Unknown field names are rejected (no silent ignore).
    - Empty values are treated as "not supplied". On update that means the
      column is left alone; on create the field takes its default.
    - ingredients / instructions: JSON array of strings, e.g. '["eggs","milk"]'
    - isPublished: "true" (any case) is true; every other value is false.
    - Integer fields accept decimal strings; pydantic rejects anything else.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Type, TypeVar, Union

from pydantic import ValidationError as PydanticValidationError
from starlette.datastructures import FormData, UploadFile

from recipeshare.exceptions import ValidationError
from recipeshare.schemas.recipe import RecipeCreate, RecipeField, RecipeUpdate
from recipeshare.services.image_service import UploadedImage

logger = logging.getLogger(__name__)

M = TypeVar("M", RecipeCreate, RecipeUpdate)

_KNOWN_FIELDS = {field.value: field for field in RecipeField}


@dataclass(frozen=True)
class RecipeForm:
    """Decoded multipart body: scalar fields plus the optional image."""

    fields: Dict[str, str]
    image: Optional[UploadedImage] = None


async def decode_multipart(form: FormData) -> RecipeForm:
    """
    Split a parsed multipart form into scalar fields and zero-or-one file.

    Raises:
        ValidationError: more than one file part, or a scalar field repeated
    """
    fields: Dict[str, str] = {}
    uploads = []

    for name, value in form.multi_items():
        if isinstance(value, UploadFile):
            uploads.append(value)
            continue
        if name in fields:
            raise ValidationError(f"Field '{name}' was supplied more than once", field=name)
        fields[name] = value

    if len(uploads) > 1:
        raise ValidationError("Only one image can be uploaded per recipe", field="image")

    image = None
    if uploads:
        upload = uploads[0]
        data = await upload.read()
        await upload.close()
        # Browsers send an empty file part when the picker is left blank
        if data:
            image = UploadedImage(
                data=data,
                content_type=upload.content_type,
                filename=upload.filename,
            )

    return RecipeForm(fields=fields, image=image)


def parse_recipe_fields(fields: Mapping[str, str], partial: bool) -> Union[RecipeCreate, RecipeUpdate]:
    """
    Validate form fields into a RecipeCreate (partial=False) or RecipeUpdate.

    Raises:
        ValidationError: unknown name, malformed JSON, or a value pydantic rejects
    """
    model: Type[Any] = RecipeUpdate if partial else RecipeCreate
    return _validate(model, _coerce(fields))


def _coerce(fields: Mapping[str, str]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for name, raw in fields.items():
        field = _KNOWN_FIELDS.get(name)
        if field is None:
            raise ValidationError(f"Unknown field '{name}'", field=name)
        if raw is None or raw.strip() == "":
            continue

        if field.is_list:
            try:
                values[name] = json.loads(raw)
            except json.JSONDecodeError as e:
                raise ValidationError(
                    f"{name} must be a JSON array of strings", field=name
                ) from e
        elif field is RecipeField.IS_PUBLISHED:
            values[name] = raw.strip().lower() == "true"
        else:
            values[name] = raw
    return values


def _validate(model: Type[M], values: Dict[str, Any]) -> M:
    try:
        return model.model_validate(values)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or None
        logger.debug("Recipe form rejected: %s", e.errors())
        message = f"{field}: {first['msg']}" if field else first["msg"]
        raise ValidationError(message, field=field) from e
