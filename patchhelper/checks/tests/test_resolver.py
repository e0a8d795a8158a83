import pytest

from patchhelper.checks.models import CheckType, Level, OverrideFinding
from patchhelper.checks.resolver import ClassDescriptorCache, OverrideResolver, ResolverResult
from patchhelper.diff.parser import parse_unified_diff
from patchhelper.exceptions import (
    ConfigurationGraphError,
    PluginDetectionException,
    VirtualTypeException,
)
from patchhelper.mapping.path_mapper import PathMapper
from patchhelper.platform.config_graph import StaticConfigurationGraph

from conftest import PRODUCT_CLASS, PRODUCT_PATH, TEMPLATE_DIFF, TEMPLATE_OLD, THEME_TEMPLATE_PATH

ACME_PRODUCT = "Acme\\Catalog\\Model\\Product"
ACME_PLUGIN = "Acme\\Catalog\\Plugin\\ProductPlugin"

# a private helper deleted from just above execute()
HELPER_REMOVED_DIFF = (
    "--- vendor_orig/magento/module-catalog/Model/Product.php\n"
    "+++ vendor/magento/module-catalog/Model/Product.php\n"
    "@@ -12,5 +12,3 @@\n"
    "     }\n"
    " \n"
    "-    private function helper() {}\n"
    "-\n"
    "     public function execute()\n"
)

EXECUTE_LINE_REMOVED_DIFF = (
    "--- vendor_orig/magento/module-catalog/Model/Product.php\n"
    "+++ vendor/magento/module-catalog/Model/Product.php\n"
    "@@ -15,4 +15,3 @@\n"
    "     {\n"
    "         $result = $this->load();\n"
    "-        $this->log();\n"
    "         return $result;\n"
)


class CountingGraph:
    """Wraps a graph and counts preference lookups."""

    def __init__(self, graph):
        self.graph = graph
        self.calls = 0

    def get_preference(self, type_name):
        self.calls += 1
        return self.graph.get_preference(type_name)

    def get_plugins(self, type_name):
        return self.graph.get_plugins(type_name)

    def resolve_alias(self, name):
        return self.graph.resolve_alias(name)

    def list_aliases(self):
        return self.graph.list_aliases()


class FailingGraph(CountingGraph):
    def get_preference(self, type_name):
        self.calls += 1
        raise ConfigurationGraphError("object manager not available")


def _graph(virtual_types, classes):
    return StaticConfigurationGraph(virtual_types=virtual_types, class_exists=lambda name: name in classes)


def _resolve(project, diff, **kwargs):
    patch_file = parse_unified_diff(diff)[0]
    resolver = OverrideResolver(
        project.root,
        PathMapper(project.registry),
        ClassDescriptorCache(project.graph()),
        **kwargs,
    )
    return resolver.resolve(patch_file, resolver.path_mapper.candidates(patch_file.path))


def _rows(result):
    return sorted((f.level, f.check_type, f.detail) for f in result.findings)


class TestAliasResolution:
    """Alias chains resolve step by step to a concrete class."""

    def test_chain_of_aliases(self):
        cache = ClassDescriptorCache(_graph({"Acme\\A": "Acme\\B", "Acme\\B": "\\Acme\\C"}, {"Acme\\C"}))

        assert cache.resolve_chain("\\Acme\\A") == ("Acme\\C", ["Acme\\A", "Acme\\B", "Acme\\C"])

    def test_concrete_class_is_its_own_chain(self):
        cache = ClassDescriptorCache(_graph({}, {"Acme\\C"}))
        assert cache.resolve_chain("Acme\\C") == ("Acme\\C", ["Acme\\C"])

    def test_dangling_alias(self):
        cache = ClassDescriptorCache(_graph({"Acme\\A": "Acme\\Missing"}, set()))

        with pytest.raises(VirtualTypeException) as exc_info:
            cache.resolve_chain("Acme\\A")
        assert exc_info.value.chain == ["Acme\\A", "Acme\\Missing"]
        assert exc_info.value.reason == "dangling alias"

    def test_alias_cycle(self):
        cache = ClassDescriptorCache(_graph({"Acme\\A": "Acme\\B", "Acme\\B": "Acme\\A"}, set()))

        with pytest.raises(VirtualTypeException) as exc_info:
            cache.resolve_chain("Acme\\A")
        assert exc_info.value.reason == "alias cycle"
        assert exc_info.value.chain == ["Acme\\A", "Acme\\B", "Acme\\A"]

    def test_aliases_of_follows_reverse_chain(self):
        cache = ClassDescriptorCache(
            _graph({"Acme\\A": "Acme\\C", "Acme\\B": "Acme\\A", "Acme\\X": "Acme\\Y"}, {"Acme\\C", "Acme\\Y"})
        )
        assert cache.aliases_of("Acme\\C") == ["Acme\\A", "Acme\\B"]


class TestClassDescriptorCache:
    def test_descriptors_are_memoized(self, magento_project):
        graph = CountingGraph(magento_project.graph())
        cache = ClassDescriptorCache(graph)

        first = cache.get(PRODUCT_CLASS)
        second = cache.get("\\" + PRODUCT_CLASS)

        assert first is second
        assert graph.calls == 1
        assert len(cache) == 1

    def test_failures_are_not_cached(self, magento_project):
        graph = FailingGraph(magento_project.graph())
        cache = ClassDescriptorCache(graph)

        for _ in range(2):
            with pytest.raises(ConfigurationGraphError):
                cache.get(PRODUCT_CLASS)
        assert graph.calls == 2
        assert len(cache) == 0

    def test_disabled_plugins_are_skipped(self, magento_project):
        magento_project.add_plugin(ACME_PLUGIN, {"execute": ["after"]}, disabled=True)
        descriptor = ClassDescriptorCache(magento_project.graph()).get(PRODUCT_CLASS)
        assert not descriptor.has_plugins


class TestPreferenceCheck:
    @pytest.fixture(autouse=True)
    def preference(self, magento_project):
        magento_project.preferences[PRODUCT_CLASS] = ACME_PRODUCT
        magento_project.classes.add(ACME_PRODUCT)

    def test_public_method_body_change_warns(self, magento_project, samples):
        result = _resolve(magento_project, samples.execute_body_diff)
        assert _rows(result) == [(Level.WARN, CheckType.PREFERENCE, ACME_PRODUCT)]

    def test_public_signature_change_warns(self, magento_project, samples):
        result = _resolve(magento_project, samples.public_signature_diff)
        assert _rows(result) == [(Level.WARN, CheckType.PREFERENCE, ACME_PRODUCT)]

    def test_private_field_change_is_info(self, magento_project, samples):
        result = _resolve(magento_project, samples.private_field_diff)
        assert _rows(result) == [(Level.INFO, CheckType.PREFERENCE, ACME_PRODUCT)]

    def test_private_method_change_is_info(self, magento_project, samples):
        result = _resolve(magento_project, samples.private_method_diff)
        assert _rows(result) == [(Level.INFO, CheckType.PREFERENCE, ACME_PRODUCT)]

    def test_removed_private_method_above_public_one_is_info(self, magento_project):
        result = _resolve(magento_project, HELPER_REMOVED_DIFF)
        assert _rows(result) == [(Level.INFO, CheckType.PREFERENCE, ACME_PRODUCT)]

    def test_adding_public_change_never_lowers_level(self, magento_project, samples):
        private_only = _resolve(magento_project, samples.private_method_diff)
        combined_diff = samples.public_signature_diff + "".join(
            samples.private_method_diff.splitlines(keepends=True)[2:]
        )
        combined = _resolve(magento_project, combined_diff)

        assert private_only.findings[0].level == Level.INFO
        assert combined.findings[0].level == Level.WARN

    def test_deleted_vendor_file_warns(self, magento_project):
        diff = (
            "--- vendor_orig/magento/module-catalog/Model/Product.php\n"
            "+++ vendor/magento/module-catalog/Model/Product.php\n"
            "@@ -1,2 +0,0 @@\n"
            "-<?php\n"
            "-class Product {}\n"
        )
        result = _resolve(magento_project, diff)
        assert _rows(result) == [(Level.WARN, CheckType.PREFERENCE, ACME_PRODUCT)]

    def test_vendor_namespace_filter(self, magento_project, samples):
        assert _resolve(magento_project, samples.execute_body_diff, vendor_namespaces=["Other"]).findings == []
        result = _resolve(magento_project, samples.execute_body_diff, vendor_namespaces=["Acme"])
        assert len(result.findings) == 1

    def test_threeway_hint(self, magento_project, samples):
        result = _resolve(magento_project, samples.execute_body_diff, threeway=True)

        assert len(result.hints) == 1
        hint = result.hints[0]
        assert hint.vendor_file == PRODUCT_PATH
        assert hint.local_override_file == "app/code/Acme/Catalog/Model/Product.php"
        assert hint.base_vendor_file == "vendor_orig/magento/module-catalog/Model/Product.php"


class TestPreferenceThroughVirtualType:
    def test_preference_via_alias_reports_chain(self, magento_project, samples):
        magento_project.preferences[PRODUCT_CLASS] = "Acme\\Catalog\\Model\\VirtualProduct"
        magento_project.virtual_types["Acme\\Catalog\\Model\\VirtualProduct"] = ACME_PRODUCT
        magento_project.classes.add(ACME_PRODUCT)

        result = _resolve(magento_project, samples.execute_body_diff)

        assert _rows(result) == [
            (Level.INFO, CheckType.VIRTUAL_TYPE, "Acme\\Catalog\\Model\\VirtualProduct -> " + ACME_PRODUCT),
            (Level.WARN, CheckType.PREFERENCE, ACME_PRODUCT),
        ]

    def test_dangling_preference_raises(self, magento_project, samples):
        magento_project.preferences[PRODUCT_CLASS] = "Acme\\Catalog\\Model\\VirtualProduct"
        magento_project.virtual_types["Acme\\Catalog\\Model\\VirtualProduct"] = "Acme\\Catalog\\Model\\Gone"

        with pytest.raises(VirtualTypeException):
            _resolve(magento_project, samples.execute_body_diff)


class TestPluginCheck:
    def test_targeted_method_warns(self, magento_project, samples):
        magento_project.add_plugin(ACME_PLUGIN, {"execute": ["after"]})
        result = _resolve(magento_project, samples.execute_body_diff)

        assert _rows(result) == [(Level.WARN, CheckType.PLUGIN, ACME_PLUGIN + "::afterExecute")]

    def test_changed_signature_hits_plugin(self, magento_project, samples):
        magento_project.add_plugin(ACME_PLUGIN, {"execute": ["before", "around"]})
        result = _resolve(magento_project, samples.public_signature_diff)

        assert _rows(result) == [
            (Level.WARN, CheckType.PLUGIN, f"{ACME_PLUGIN}::beforeExecute, {ACME_PLUGIN}::aroundExecute")
        ]

    def test_untouched_method_is_ignore(self, magento_project, samples):
        magento_project.add_plugin(ACME_PLUGIN, {"execute": ["after"]})
        result = _resolve(magento_project, samples.private_method_diff)

        assert _rows(result) == [(Level.IGNORE, CheckType.PLUGIN, ACME_PLUGIN)]

    def test_removal_in_front_of_targeted_method_is_ignore(self, magento_project):
        magento_project.add_plugin(ACME_PLUGIN, {"execute": ["after"]})
        result = _resolve(magento_project, HELPER_REMOVED_DIFF)

        assert _rows(result) == [(Level.IGNORE, CheckType.PLUGIN, ACME_PLUGIN)]
        resolver = OverrideResolver(
            magento_project.root,
            PathMapper(magento_project.registry),
            ClassDescriptorCache(magento_project.graph()),
        )
        assert resolver.changed_methods(parse_unified_diff(HELPER_REMOVED_DIFF)[0]) == ["helper"]

    def test_removal_inside_method_body_warns(self, magento_project):
        magento_project.add_plugin(ACME_PLUGIN, {"execute": ["after"]})
        result = _resolve(magento_project, EXECUTE_LINE_REMOVED_DIFF)

        assert _rows(result) == [(Level.WARN, CheckType.PLUGIN, ACME_PLUGIN + "::afterExecute")]

    def test_plugin_declared_on_alias(self, magento_project, samples):
        alias = "Acme\\Catalog\\Model\\ProductAlias"
        magento_project.virtual_types[alias] = PRODUCT_CLASS
        magento_project.add_plugin(ACME_PLUGIN, {"execute": ["after"]}, declared_on=alias)

        result = _resolve(magento_project, samples.execute_body_diff)

        assert _rows(result) == [
            (Level.INFO, CheckType.VIRTUAL_TYPE, f"{alias} -> {PRODUCT_CLASS}"),
            (Level.WARN, CheckType.PLUGIN, ACME_PLUGIN + "::afterExecute"),
        ]

    def test_plugin_type_given_as_alias_reports_concrete_class(self, magento_project, samples):
        magento_project.add_plugin("Acme\\Catalog\\Plugin\\VirtualPlugin", {"execute": ["after"]})
        magento_project.classes.discard("Acme\\Catalog\\Plugin\\VirtualPlugin")
        magento_project.virtual_types["Acme\\Catalog\\Plugin\\VirtualPlugin"] = ACME_PLUGIN
        magento_project.classes.add(ACME_PLUGIN)

        result = _resolve(magento_project, samples.execute_body_diff)
        assert _rows(result) == [(Level.WARN, CheckType.PLUGIN, ACME_PLUGIN + "::afterExecute")]

    def test_deleted_vendor_file_warns_every_method(self, magento_project):
        magento_project.add_plugin(ACME_PLUGIN, {"execute": ["after"], "load": ["before"]})
        diff = (
            "--- vendor_orig/magento/module-catalog/Model/Product.php\n"
            "+++ vendor/magento/module-catalog/Model/Product.php\n"
            "@@ -1,1 +0,0 @@\n"
            "-<?php\n"
        )
        result = _resolve(magento_project, diff)

        assert _rows(result) == [
            (Level.WARN, CheckType.PLUGIN, ACME_PLUGIN + "::afterExecute"),
            (Level.WARN, CheckType.PLUGIN, ACME_PLUGIN + "::beforeLoad"),
        ]

    def test_no_plugins_no_findings(self, magento_project, samples):
        assert _resolve(magento_project, samples.execute_body_diff).findings == []


class TestPluginDetectionFailures:
    @pytest.fixture(autouse=True)
    def plugin(self, magento_project):
        magento_project.add_plugin(ACME_PLUGIN, {"execute": ["after"]})

    def test_unreadable_vendor_file(self, magento_project, samples):
        (magento_project.root / PRODUCT_PATH).unlink()

        with pytest.raises(PluginDetectionException) as exc_info:
            _resolve(magento_project, samples.execute_body_diff)
        assert exc_info.value.vendor_file == PRODUCT_PATH

    def test_changed_line_beyond_end_of_file(self, magento_project):
        diff = (
            "--- vendor_orig/magento/module-catalog/Model/Product.php\n"
            "+++ vendor/magento/module-catalog/Model/Product.php\n"
            "@@ -40,1 +40,1 @@\n"
            "-    // old\n"
            "+    // new\n"
        )
        with pytest.raises(PluginDetectionException):
            _resolve(magento_project, diff)

    def test_unbalanced_vendor_source(self, magento_project, samples):
        magento_project.write(PRODUCT_PATH, "<?php\nclass Product\n{\n    public function execute()\n    {\n")

        with pytest.raises(PluginDetectionException):
            _resolve(magento_project, samples.execute_body_diff)

    def test_configuration_graph_error_is_wrapped(self, magento_project, samples):
        patch_file = parse_unified_diff(samples.execute_body_diff)[0]
        resolver = OverrideResolver(
            magento_project.root,
            PathMapper(magento_project.registry),
            ClassDescriptorCache(FailingGraph(magento_project.graph())),
        )

        with pytest.raises(PluginDetectionException) as exc_info:
            resolver.resolve(patch_file, resolver.path_mapper.candidates(patch_file.path))
        assert isinstance(exc_info.value.__cause__, ConfigurationGraphError)


class TestFileOverrideCheck:
    def test_theme_copy_reported(self, magento_project):
        magento_project.write(THEME_TEMPLATE_PATH, TEMPLATE_OLD)
        result = _resolve(magento_project, TEMPLATE_DIFF, threeway=True)

        assert _rows(result) == [(Level.INFO, CheckType.FILE_OVERRIDE, THEME_TEMPLATE_PATH)]
        assert result.hints[0].local_override_file == THEME_TEMPLATE_PATH
        assert result.hints[0].base_vendor_file == (
            "vendor_orig/magento/module-catalog/view/frontend/templates/product/view.phtml"
        )

    def test_no_theme_copy(self, magento_project):
        assert _resolve(magento_project, TEMPLATE_DIFF).findings == []


def test_base_vendor_path_without_old_path(magento_project):
    resolver = OverrideResolver(
        magento_project.root,
        PathMapper(magento_project.registry),
        ClassDescriptorCache(magento_project.graph()),
        base_vendor_dir="vendor_base/",
    )
    patch_file = parse_unified_diff("--- /dev/null\n+++ vendor/acme/x/New.php\n@@ -0,0 +1 @@\n+<?php\n")[0]
    assert resolver.base_vendor_path(patch_file) == "vendor_base/acme/x/New.php"


def test_result_keeps_highest_level_per_detail():
    result = ResolverResult()
    base = dict(check_type=CheckType.PLUGIN, vendor_file="v.php", detail="P::afterX")

    result.add(OverrideFinding(level=Level.IGNORE, **base))
    result.add(OverrideFinding(level=Level.WARN, **base))
    result.add(OverrideFinding(level=Level.INFO, **base))

    assert [f.level for f in result.findings] == [Level.WARN]
