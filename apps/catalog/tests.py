from decimal import Decimal

from django.test import TestCase

from .models import Product, ProductVariant


class ProductModelTests(TestCase):
    def test_slug_generated_and_deduplicated(self):
        first = Product.objects.create(name="Whey Protein", price=Decimal("2499.00"))
        second = Product.objects.create(name="Whey Protein", price=Decimal("2599.00"))

        self.assertEqual(first.slug, "whey-protein")
        self.assertEqual(second.slug, "whey-protein-1")

    def test_slug_kept_on_resave(self):
        product = Product.objects.create(name="Creatine", price=Decimal("999.00"))
        product.name = "Creatine Monohydrate"
        product.save()

        product.refresh_from_db()
        self.assertEqual(product.slug, "creatine")

    def test_variant_str(self):
        product = Product.objects.create(name="Creatine", price=Decimal("999.00"))
        variant = ProductVariant.objects.create(
            product=product, variant_name="250g Unflavoured", sku="CRE-250", price=Decimal("999.00")
        )
        self.assertEqual(str(variant), "Creatine - 250g Unflavoured")
