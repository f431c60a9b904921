"""
RecipeShare Backend - Recipe Form Decoding Tests
==================================================

What we test:
    ✅ String form values become typed recipe fields
    ✅ Empty values are skipped (defaults on create, untouched on update)
    ✅ Unknown names and malformed JSON are rejected
    ✅ Multipart split: one file allowed, two rejected, empty file ignored
"""

import io

import pytest
from starlette.datastructures import FormData, Headers, UploadFile

from recipeshare.exceptions import ValidationError
from recipeshare.schemas.recipe import RecipeCreate, RecipeUpdate
from recipeshare.services.recipe_form import decode_multipart, parse_recipe_fields


def _upload(data: bytes, content_type: str = "image/jpeg", filename: str = "dish.jpg") -> UploadFile:
    return UploadFile(
        file=io.BytesIO(data),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


class TestParseRecipeFields:
    def test_create_from_strings(self):
        fields = parse_recipe_fields(
            {
                "title": "  Pancakes ",
                "ingredients": '["flour", "milk"]',
                "instructions": '["mix", "fry"]',
                "prepTimeMinutes": "10",
                "cookingTimeMinutes": "15",
                "servingSize": "4",
                "isPublished": "true",
            },
            partial=False,
        )

        assert isinstance(fields, RecipeCreate)
        assert fields.title == "Pancakes"
        assert fields.ingredients == ["flour", "milk"]
        assert fields.prep_time_minutes == 10
        assert fields.serving_size == 4
        assert fields.is_published is True

    def test_create_defaults(self):
        fields = parse_recipe_fields({"title": "Toast", "description": ""}, partial=False)

        assert fields.description == ""
        assert fields.ingredients == []
        assert fields.serving_size == 1
        assert fields.is_published is False

    def test_missing_title_on_create(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_recipe_fields({"description": "no title"}, partial=False)
        assert exc_info.value.field == "title"

    @pytest.mark.parametrize("value", ["false", "False", "yes", "1"])
    def test_only_true_publishes(self, value):
        fields = parse_recipe_fields({"title": "Toast", "isPublished": value}, partial=False)
        assert fields.is_published is (value.lower() == "true")

    def test_update_skips_empty_values(self):
        changes = parse_recipe_fields({"title": "Crepes", "description": "", "servingSize": ""}, partial=True)

        assert isinstance(changes, RecipeUpdate)
        assert changes.to_columns() == {"title": "Crepes"}

    def test_update_with_only_empty_values_is_empty(self):
        changes = parse_recipe_fields({"title": "", "ingredients": ""}, partial=True)
        assert changes.is_empty()

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_recipe_fields({"title": "Toast", "authorId": "someone-else"}, partial=True)
        assert exc_info.value.field == "authorId"

    def test_snake_case_name_rejected(self):
        with pytest.raises(ValidationError):
            parse_recipe_fields({"serving_size": "2"}, partial=True)

    def test_malformed_json_list_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_recipe_fields({"title": "Toast", "ingredients": "flour, milk"}, partial=False)
        assert exc_info.value.field == "ingredients"

    def test_non_numeric_time_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_recipe_fields({"title": "Toast", "prepTimeMinutes": "ten"}, partial=False)
        assert exc_info.value.field == "prepTimeMinutes"

    def test_zero_servings_rejected(self):
        with pytest.raises(ValidationError):
            parse_recipe_fields({"servingSize": "0"}, partial=True)

    def test_blank_title_on_update_is_skipped(self):
        changes = parse_recipe_fields({"title": "   ", "servingSize": "3"}, partial=True)
        assert changes.to_columns() == {"serving_size": 3}


class TestDecodeMultipart:
    @pytest.mark.asyncio
    async def test_fields_and_one_image(self):
        form = FormData([("title", "Pancakes"), ("image", _upload(b"jpeg-bytes"))])

        decoded = await decode_multipart(form)

        assert decoded.fields == {"title": "Pancakes"}
        assert decoded.image.data == b"jpeg-bytes"
        assert decoded.image.content_type == "image/jpeg"
        assert decoded.image.filename == "dish.jpg"

    @pytest.mark.asyncio
    async def test_no_image(self):
        decoded = await decode_multipart(FormData([("title", "Pancakes")]))
        assert decoded.image is None

    @pytest.mark.asyncio
    async def test_empty_file_part_is_no_image(self):
        decoded = await decode_multipart(FormData([("image", _upload(b""))]))
        assert decoded.image is None

    @pytest.mark.asyncio
    async def test_two_files_rejected(self):
        form = FormData([("image", _upload(b"a")), ("photo", _upload(b"b"))])

        with pytest.raises(ValidationError):
            await decode_multipart(form)

    @pytest.mark.asyncio
    async def test_repeated_field_rejected(self):
        form = FormData([("title", "One"), ("title", "Two")])

        with pytest.raises(ValidationError):
            await decode_multipart(form)
