"""
Tests for document path templates.
"""

import pytest

from support_bridge.core.exceptions import PathTemplateError
from support_bridge.core.paths import DocumentPathTemplate, PathKind


class TestParse:

    def test_default_document_template(self):
        template = DocumentPathTemplate.parse("users/{userId}/support/default", PathKind.DOCUMENT)

        assert template.user_id_index == 1
        assert template.collection_name == "support"

    def test_default_collection_template(self):
        template = DocumentPathTemplate.parse("users/{userId}/support/default/messages", PathKind.COLLECTION)

        assert template.collection_name == "messages"

    def test_leading_and_trailing_slashes_are_ignored(self):
        template = DocumentPathTemplate.parse("/users/{userId}/support/default/", PathKind.DOCUMENT)
        assert template.render("u1") == "users/u1/support/default"

    @pytest.mark.parametrize("raw", ["", "   "])
    def test_empty_template_rejected(self, raw):
        with pytest.raises(PathTemplateError):
            DocumentPathTemplate.parse(raw, PathKind.DOCUMENT)

    @pytest.mark.parametrize("raw", [
        "users/support/default/x",
        "users/{userId}/{userId}/default",
        "users//{userId}/default",
        "users/{userId}/support/{threadId}",
    ])
    def test_malformed_templates_rejected(self, raw):
        with pytest.raises(PathTemplateError):
            DocumentPathTemplate.parse(raw, PathKind.DOCUMENT)

    def test_document_template_needs_even_segments(self):
        with pytest.raises(PathTemplateError):
            DocumentPathTemplate.parse("users/{userId}/support", PathKind.DOCUMENT)

    def test_collection_template_needs_odd_segments(self):
        with pytest.raises(PathTemplateError):
            DocumentPathTemplate.parse("users/{userId}/support/default", PathKind.COLLECTION)

    def test_placeholder_cannot_name_the_collection(self):
        with pytest.raises(PathTemplateError):
            DocumentPathTemplate.parse("support/default/{userId}", PathKind.COLLECTION)


class TestRenderAndExtract:

    @pytest.fixture
    def template(self):
        return DocumentPathTemplate.parse("users/{userId}/support/default", PathKind.DOCUMENT)

    def test_render(self, template):
        assert template.render("abc123") == "users/abc123/support/default"

    @pytest.mark.parametrize("user_id", ["", "a/b"])
    def test_render_rejects_bad_user_ids(self, template, user_id):
        with pytest.raises(PathTemplateError):
            template.render(user_id)

    def test_extract_is_inverse_of_render(self, template):
        assert template.extract_user_id(template.render("user-42")) == "user-42"

    @pytest.mark.parametrize("path", [
        "users/abc/support",
        "users/abc/support/other",
        "accounts/abc/support/default",
        "users//support/default",
    ])
    def test_extract_rejects_foreign_paths(self, template, path):
        with pytest.raises(PathTemplateError):
            template.extract_user_id(path)
