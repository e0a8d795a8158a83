from pathlib import Path
from types import SimpleNamespace

import pytest

from patchhelper.config import AuditSettings
from patchhelper.classify.classifier import Classifier
from patchhelper.platform.config_graph import StaticConfigurationGraph
from patchhelper.platform.models import (
    ModuleDescriptor,
    OverrideMechanism,
    OverrideRoot,
    PluginRef,
)
from patchhelper.platform.registry import StaticModuleRegistry

PRODUCT_CLASS = "Magento\\Catalog\\Model\\Product"
PRODUCT_PATH = "vendor/magento/module-catalog/Model/Product.php"
TEMPLATE_PATH = "vendor/magento/module-catalog/view/frontend/templates/product/view.phtml"
THEME_TEMPLATE_PATH = "app/design/frontend/Acme/default/Magento_Catalog/templates/product/view.phtml"

# post-upgrade vendor class, line numbers matter to the diffs below
PRODUCT_SOURCE = """\
<?php
namespace Magento\\Catalog\\Model;

class Product
{
    private $limit = 20;

    public function __construct(
        Context $context
    ) {
        $this->context = $context;
    }

    public function execute()
    {
        $result = $this->load();
        return $result;
    }

    private function load()
    {
        return [];
    }
}
"""

EXECUTE_BODY_DIFF = """\
--- vendor_orig/magento/module-catalog/Model/Product.php
+++ vendor/magento/module-catalog/Model/Product.php
@@ -14,5 +14,5 @@
     public function execute()
     {
-        $result = $this->fetch();
+        $result = $this->load();
         return $result;
     }
"""

PRIVATE_FIELD_DIFF = """\
--- vendor_orig/magento/module-catalog/Model/Product.php
+++ vendor/magento/module-catalog/Model/Product.php
@@ -4,3 +4,3 @@
 class Product
 {
-    private $limit = 10;
+    private $limit = 20;
"""

PRIVATE_METHOD_DIFF = """\
--- vendor_orig/magento/module-catalog/Model/Product.php
+++ vendor/magento/module-catalog/Model/Product.php
@@ -20,4 +20,4 @@
     private function load()
     {
-        return null;
+        return [];
     }
"""

PUBLIC_SIGNATURE_DIFF = """\
--- vendor_orig/magento/module-catalog/Model/Product.php
+++ vendor/magento/module-catalog/Model/Product.php
@@ -14,3 +14,3 @@
-    public function execute($force)
+    public function execute()
     {
         $result = $this->load();
"""

TEMPLATE_OLD = """\
<div class="product-view">
    <span><?= $block->getName() ?></span>
    <p><?= $block->getSku() ?></p>
</div>
"""

TEMPLATE_NEW = """\
<div class="product-view">
    <span><?= $escaper->escapeHtml($block->getName()) ?></span>
    <p><?= $block->getSku() ?></p>
</div>
"""

TEMPLATE_DIFF = """\
--- vendor_orig/magento/module-catalog/view/frontend/templates/product/view.phtml
+++ vendor/magento/module-catalog/view/frontend/templates/product/view.phtml
@@ -1,4 +1,4 @@
 <div class="product-view">
-    <span><?= $block->getName() ?></span>
+    <span><?= $escaper->escapeHtml($block->getName()) ?></span>
     <p><?= $block->getSku() ?></p>
 </div>
"""


def catalog_module() -> ModuleDescriptor:
    return ModuleDescriptor(
        name="Magento_Catalog",
        vendor_root="vendor/magento/module-catalog",
        namespace="Magento\\Catalog",
        override_roots={
            OverrideMechanism.FILE_OVERRIDE: [
                OverrideRoot(path="app/design/frontend/Acme/default/Magento_Catalog", area="frontend"),
                OverrideRoot(path="app/design/adminhtml/Acme/backend/Magento_Catalog", area="adminhtml"),
            ],
            OverrideMechanism.CLASS_PREFERENCE: [OverrideRoot(path="app/code")],
            OverrideMechanism.PLUGIN: [OverrideRoot(path="app/code")],
        },
    )


def acme_module() -> ModuleDescriptor:
    return ModuleDescriptor(
        name="Acme_Catalog",
        vendor_root="app/code/Acme/Catalog",
        namespace="Acme\\Catalog",
    )


class MagentoProject:
    """A throwaway platform checkout on disk plus in-memory DI configuration."""

    def __init__(self, root: Path):
        self.root = root
        self.registry = StaticModuleRegistry([catalog_module(), acme_module()])
        self.classes = {PRODUCT_CLASS}
        self.preferences: dict[str, str] = {}
        self.plugins: list[PluginRef] = []
        self.virtual_types: dict[str, str] = {}
        self.write(PRODUCT_PATH, PRODUCT_SOURCE)
        self.write(TEMPLATE_PATH, TEMPLATE_NEW)

    def write(self, relative: str, content: str) -> Path:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    def read(self, relative: str) -> str:
        return (self.root / relative).read_text(encoding="utf-8")

    def add_plugin(self, plugin_type: str, methods: dict[str, list[str]], declared_on: str = PRODUCT_CLASS, **kwargs) -> None:
        self.classes.add(plugin_type)
        self.plugins.append(
            PluginRef(
                name=kwargs.pop("name", plugin_type.rsplit("\\", 1)[-1].lower()),
                plugin_type=plugin_type,
                declared_on=declared_on,
                methods=methods,
                **kwargs,
            )
        )

    def graph(self) -> StaticConfigurationGraph:
        return StaticConfigurationGraph(
            preferences=self.preferences,
            plugins=self.plugins,
            virtual_types=self.virtual_types,
            class_exists=lambda name: name in self.classes,
        )

    def classifier(self, settings: AuditSettings | None = None) -> Classifier:
        return Classifier(self.registry, self.graph(), self.root, settings)


@pytest.fixture
def magento_project(tmp_path: Path) -> MagentoProject:
    return MagentoProject(tmp_path)


@pytest.fixture
def samples() -> SimpleNamespace:
    return SimpleNamespace(
        product_class=PRODUCT_CLASS,
        product_path=PRODUCT_PATH,
        product_source=PRODUCT_SOURCE,
        template_path=TEMPLATE_PATH,
        theme_template_path=THEME_TEMPLATE_PATH,
        template_old=TEMPLATE_OLD,
        template_new=TEMPLATE_NEW,
        template_diff=TEMPLATE_DIFF,
        execute_body_diff=EXECUTE_BODY_DIFF,
        private_field_diff=PRIVATE_FIELD_DIFF,
        private_method_diff=PRIVATE_METHOD_DIFF,
        public_signature_diff=PUBLIC_SIGNATURE_DIFF,
    )
