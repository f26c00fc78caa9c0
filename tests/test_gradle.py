"""Tests for reading Kotlin DSL syntax trees into scripts."""
import textwrap

import pytest

from android_build.errors import GradleScriptError
from android_build.gradle import Assignment, Block, Call, Declaration, Elvis, Index, Invocation, Literal, Member, \
    NotNull, Pair, Reference, Template, Unsupported, parse_expression, parse_script

from conftest import FLUTTER_APP_SCRIPT, SIGNING_SCRIPT


class TestParseScript:
    """Tests for statements of an app module build script."""

    def test_top_level_blocks(self):
        script = parse_script(FLUTTER_APP_SCRIPT)
        assert [b.name for b in script.blocks()] == ["plugins", "android", "flutter", "dependencies"]
        assert script.errors == ()

    def test_plugin_invocations(self):
        plugins = parse_script(FLUTTER_APP_SCRIPT).block("plugins")
        calls = [i.expr for i in plugins.invocations()]
        assert calls[0] == Call(None, "id", (Literal("com.android.application"),))
        assert len(calls) == 3

    def test_nested_assignment(self):
        android = parse_script(FLUTTER_APP_SCRIPT).block("android")
        default_config = android.block("defaultConfig")
        assert default_config.assigned("applicationId") == Literal("com.example.mechanic_discovery_app")
        assert android.assigned("ndkVersion") == Literal("27.0.12077973")

    def test_safe_call_with_elvis(self):
        default_config = parse_script(FLUTTER_APP_SCRIPT).block("android").block("defaultConfig")
        assert default_config.assigned("minSdk") == Elvis(
            Call(Member(Reference("flutter"), "minSdkVersion"), "toInt", safe=True),
            Literal(21),
        )

    def test_indexed_assignment(self):
        default_config = parse_script(FLUTTER_APP_SCRIPT).block("android").block("defaultConfig")
        placeholder = [a for a in default_config.assignments() if isinstance(a.target, Index)]
        assert len(placeholder) == 1
        assert placeholder[0].target == Index(Reference("manifestPlaceholders"), Literal("appAuthRedirectScheme"))

    def test_block_with_arguments(self):
        build_types = parse_script(FLUTTER_APP_SCRIPT).block("android").block("buildTypes")
        release = list(build_types.blocks())[0]
        assert release.name == "getByName"
        assert release.label == "release"
        assert release.assigned("isMinifyEnabled") == Literal(False)

    def test_repeated_blocks_merge(self):
        script = parse_script("android {\n namespace = \"a\"\n}\nandroid {\n namespace = \"b\"\n}\n")
        assert script.block("android").assigned("namespace") == Literal("b")

    def test_plugin_modifiers(self):
        plugins = parse_script('plugins {\n    id("com.android.application") version "8.7.0" apply false\n}')
        invocation = next(plugins.block("plugins").invocations())
        assert invocation.expr == Call(None, "id", (Literal("com.android.application"),))
        assert invocation.modifier("version") == Literal("8.7.0")
        assert invocation.modifier("apply") == Literal(False)
        assert invocation.modifier("missing") is None

    def test_plus_assign_map(self):
        script = parse_script('defaultConfig {\n    manifestPlaceholders += mapOf("a" to "1", "b" to "2")\n}')
        assignment = next(script.block("defaultConfig").assignments())
        assert assignment.operator == "+="
        assert assignment.value == Call(None, "mapOf", (
            Pair(Literal("a"), Literal("1")),
            Pair(Literal("b"), Literal("2")),
        ))

    def test_local_value_declaration(self):
        script = parse_script('val kotlinVersion = "1.9.0"\n')
        assert list(script.declarations()) == [Declaration("kotlinVersion", Literal("1.9.0"), 1)]

    def test_if_else_kept_as_blocks(self):
        script = parse_script(textwrap.dedent("""\
            if (keystoreFile.exists()) {
                val a = 1
            } else {
                val b = 2
            }
        """))
        assert [b.name for b in script.blocks()] == ["if", "else"]
        assert [d.name for d in script.block("else").declarations()] == ["b"]

    def test_named_arguments(self):
        script = parse_script('dependencies {\n    implementation(group = "g", name = "a", version = "1")\n}')
        call = next(script.block("dependencies").invocations()).expr
        assert call.named_args == (("group", Literal("g")), ("name", Literal("a")), ("version", Literal("1")))

    def test_statements_separated_by_semicolon(self):
        script = parse_script('android { namespace = "a"; ndkVersion = "1" }')
        assert len(list(script.block("android").assignments())) == 2

    def test_statement_types(self):
        script = parse_script(FLUTTER_APP_SCRIPT)
        android = script.block("android")
        assert all(isinstance(s, (Block, Assignment, Invocation)) for s in android.statements)

    def test_comments_ignored(self):
        script = parse_script(textwrap.dedent("""\
            // Module settings
            android {
                /* required */
                namespace = "a" // trailing
            }
        """))
        assert script.block("android").assigned("namespace") == Literal("a")


class TestOutsideDeclarativeSubset:
    """Tests for valid Kotlin that a build configuration doesn't need."""

    def test_imports_skipped(self):
        script = parse_script(SIGNING_SCRIPT)
        assert script.errors == ()
        assert [b.name for b in script.blocks()] == ["plugins", "if", "android", "flutter"]
        assert [d.name for d in script.declarations()] == ["keystoreProperties", "keystorePropertiesFile"]

    def test_cast_keeps_value(self):
        signing = parse_script(SIGNING_SCRIPT).block("android").block("signingConfigs")
        release = next(signing.blocks())
        assert release.name == "create"
        assert release.label == "release"
        assert release.assigned("keyAlias") == Index(Reference("keystoreProperties"), Literal("keyAlias"))

    def test_comparison_unsupported(self):
        script = parse_script('if (System.getenv("CI") != null) {\n    val ci = true\n}\n')
        condition = script.block("if").args[0]
        assert isinstance(condition, Unsupported)
        assert condition.text == 'System.getenv("CI") != null'

    def test_function_declaration_skipped(self):
        script = parse_script(textwrap.dedent("""\
            fun versionCode(): Int = 3

            android {
                namespace = "a"
            }
        """))
        assert [b.name for b in script.blocks()] == ["android"]

    def test_syntax_errors_recorded(self):
        script = parse_script('android {\n    namespace = "a"\n')
        assert len(script.errors) > 0
        assert all(e.line >= 1 for e in script.errors)


class TestParseExpression:
    """Tests for string templates and standalone expressions."""

    def test_plain_string(self):
        assert parse_expression('"com.example.app"') == Literal("com.example.app")

    def test_escaped_dollar_is_text(self):
        assert parse_expression('"\\${applicationId}"') == Literal("${applicationId}")

    def test_simple_template(self):
        assert parse_expression('"org.jetbrains.kotlin:kotlin-stdlib:$kotlinVersion"') == Template((
            "org.jetbrains.kotlin:kotlin-stdlib:",
            Reference("kotlinVersion"),
        ))

    def test_braced_template(self):
        assert parse_expression('"v${flutter.versionName}-beta"') == Template((
            "v",
            Member(Reference("flutter"), "versionName"),
            "-beta",
        ))

    def test_numbers(self):
        assert parse_expression("21") == Literal(21)
        assert parse_expression("1_000L") == Literal(1000)
        assert parse_expression("0x1F") == Literal(31)

    def test_not_null_assertion(self):
        assert parse_expression("flutter.versionName!!") == NotNull(Member(Reference("flutter"), "versionName"))

    def test_null_literal(self):
        assert parse_expression("flutter.ndkVersion ?: null") == Elvis(
            Member(Reference("flutter"), "ndkVersion"), Literal(None)
        )

    def test_assignment_is_not_an_expression(self):
        with pytest.raises(GradleScriptError, match="Invalid expression"):
            parse_expression("a = 1")
