import pytest

from fnsplit.errors import DuplicateFunctionError, ParseError
from fnsplit.parser.scanner import Parameter, scan

from .conftest import ADD_SOURCE


class TestDiscovery:
    """Finding marked functions and their namespaces."""

    def test_module_paths(self, write_tree):
        root = write_tree("client", {
            "calc.py": ADD_SOURCE,
            "a/__init__.py": """
                from fnsplit import server


                @server
                def top() -> None:
                    pass
            """,
            "a/b.py": """
                from fnsplit import server


                @server
                def c(x: int) -> int:
                    return x
            """,
        })

        result = scan([root])

        assert [fn.qualified_name for fn in result.functions] == ["a.top", "a.b.c", "calc.add"]
        assert result.tree.get(("a", "b"), "c") is result.functions[1]
        assert len(result.tree) == 3

    def test_signature_is_extracted(self, write_tree):
        root = write_tree("client", {"calc.py": ADD_SOURCE})
        (fn,) = scan([root]).functions

        assert fn.name == "add"
        assert fn.module_path == ("calc",)
        assert fn.params == (Parameter("a", "u64"), Parameter("b", "i32"))
        assert fn.returns == "f32"
        assert not fn.is_async
        assert fn.visibility == "public"
        assert fn.line == 5
        assert fn.end_line == 7

    def test_marker_is_stripped_and_body_kept_verbatim(self, write_tree):
        root = write_tree("client", {
            "svc.py": """
                import functools

                from fnsplit import server


                @functools.lru_cache()
                @server
                async def _lookup(key: str, limit: int = 10) -> Optional[str]:
                    \"\"\"Find a key.\"\"\"
                    # keep this comment
                    return key  # and this one
            """,
        })
        (fn,) = scan([root]).functions

        assert fn.is_async
        assert fn.visibility == "private"
        assert fn.params[1] == Parameter("limit", "int", "10")
        assert fn.returns == "Optional[str]"
        assert fn.docstring == "Find a key."
        assert fn.decorators == ("@functools.lru_cache()",)
        assert "@server" not in fn.source
        assert "# keep this comment" in fn.source
        assert fn.source.startswith("@functools.lru_cache()\nasync def _lookup(")

    @pytest.mark.parametrize(
        "header, decorator",
        [
            ("import fnsplit", "@fnsplit.server"),
            ("import fnsplit as fs", "@fs.server"),
            ("from fnsplit import server as remote", "@remote"),
            ("from fnsplit import server", "@server()"),
        ],
    )
    def test_marker_spellings(self, write_tree, header, decorator):
        root = write_tree("client", {
            "m.py": f"{header}\n\n\n{decorator}\ndef ping() -> str:\n    return 'pong'\n",
        })
        assert [fn.name for fn in scan([root]).functions] == ["ping"]

    def test_marker_spelling_does_not_change_identifier(self, write_tree):
        one = write_tree("one", {"m.py": "import fnsplit\n\n@fnsplit.server\ndef f() -> int:\n    return 1\n"})
        two = write_tree("two", {"m.py": "from fnsplit import server\n@server\ndef f() -> int:\n    return 1\n"})
        assert scan([one]).functions[0].identifier == scan([two]).functions[0].identifier

    def test_unmarked_and_foreign_decorators_ignored(self, write_tree):
        root = write_tree("client", {
            "m.py": """
                from other import server


                @server
                def f(x: int) -> int:
                    return x


                def g() -> None:
                    pass
            """,
        })
        assert scan([root]).functions == []

    def test_excluded_directories_skipped(self, write_tree):
        root = write_tree("client", {
            "calc.py": ADD_SOURCE,
            ".venv/lib/calc.py": ADD_SOURCE,
            "build/calc.py": ADD_SOURCE,
        })
        assert [fn.qualified_name for fn in scan([root]).functions] == ["calc.add"]

    def test_single_file_root(self, write_tree):
        root = write_tree("client", {"calc.py": ADD_SOURCE})
        (fn,) = scan([root / "calc.py"]).functions
        assert fn.qualified_name == "calc.add"

    def test_scans_are_deterministic(self, write_tree):
        root = write_tree("client", {"calc.py": ADD_SOURCE, "x/y.py": ADD_SOURCE})
        first = [(fn.qualified_name, fn.identifier) for fn in scan([root]).functions]
        second = [(fn.qualified_name, fn.identifier) for fn in scan([root]).functions]
        assert first == second

    def test_same_text_in_two_modules_gets_two_identifiers(self, write_tree):
        root = write_tree("client", {"one.py": ADD_SOURCE, "two.py": ADD_SOURCE})
        one, two = scan([root]).functions
        assert one.identifier != two.identifier


class TestFailures:
    """Every scan failure aborts the whole scan."""

    def test_syntax_error(self, write_tree):
        root = write_tree("client", {"calc.py": ADD_SOURCE, "zz_broken.py": "def f(:\n"})
        with pytest.raises(ParseError) as info:
            scan([root])
        assert info.value.path.endswith("zz_broken.py")
        assert info.value.location[0] == 1

    def test_missing_root(self, tmp_path):
        with pytest.raises(ParseError):
            scan([tmp_path / "missing"])

    def test_nested_marked_method(self, write_tree):
        root = write_tree("client", {
            "m.py": """
                from fnsplit import server


                class Api:
                    @server
                    def f(self) -> None:
                        pass
            """,
        })
        with pytest.raises(ParseError, match="module level"):
            scan([root])

    def test_marker_outside_decorator(self, write_tree):
        root = write_tree("client", {
            "m.py": """
                from fnsplit import server


                def f(x: int) -> int:
                    return x


                g = server(f)
            """,
        })
        with pytest.raises(ParseError, match="outside a function decorator") as info:
            scan([root])
        assert info.value.location[0] == 8

    @pytest.mark.parametrize(
        "signature",
        ["f(x) -> int", "f(*args: int) -> int", "f(x: int, *, y: int) -> int", "f(**kw: int) -> int"],
    )
    def test_unsupported_parameters(self, write_tree, signature):
        root = write_tree("client", {
            "m.py": f"from fnsplit import server\n\n\n@server\ndef {signature}:\n    return 1\n",
        })
        with pytest.raises(ParseError):
            scan([root])

    def test_shadowing_across_roots(self, write_tree):
        first = write_tree("first", {"calc.py": ADD_SOURCE})
        second = write_tree("second", {"calc.py": ADD_SOURCE})
        with pytest.raises(DuplicateFunctionError):
            scan([first, second])

    def test_unimportable_module_name(self, write_tree):
        root = write_tree("client", {"my-calc.py": ADD_SOURCE})
        with pytest.raises(ParseError, match="not importable"):
            scan([root])
