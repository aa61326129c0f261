"""Unit tests for PromptRegistry."""
import pytest

from core.exceptions import PromptNotFound
from core.llm.prompt_registry import PromptRegistry


class TestPromptRegistry:

    def test_builtin_templates(self):
        registry = PromptRegistry()

        template = registry.get("v1.0", "cv_to_profile_rag")

        assert "{relevant_chunks}" in template
        assert registry.has("v1.0", "profile_to_evaluation_rag")

    def test_missing_template(self):
        registry = PromptRegistry(templates={"v1.0": {"a": "x"}})

        with pytest.raises(PromptNotFound):
            registry.get("v1.0", "b")
        with pytest.raises(PromptNotFound):
            registry.get("v9.9", "a")
        assert not registry.has("v1.0", "b")

    def test_versions_side_by_side(self):
        registry = PromptRegistry(templates={"v1.0": {"p": "old"}, "v2.0": {"p": "new"}})

        assert registry.get("v1.0", "p") == "old"
        assert registry.get("v2.0", "p") == "new"

    def test_file_overrides_builtin(self, tmp_path):
        (tmp_path / "v1.0").mkdir()
        (tmp_path / "v1.0" / "cv_to_profile.txt").write_text("From file: {cv_text}", encoding="utf-8")
        registry = PromptRegistry(prompts_dir=str(tmp_path))

        assert registry.get("v1.0", "cv_to_profile") == "From file: {cv_text}"
        assert "{relevant_chunks}" in registry.get("v1.0", "cv_to_profile_rag")

    def test_render_leaves_json_braces(self):
        template = 'Answer as {"skills": [str]}\nQuery: {query}\n{unknown}'

        rendered = PromptRegistry.render(template, {"query": "Python"})

        assert rendered == 'Answer as {"skills": [str]}\nQuery: Python\n{unknown}'
