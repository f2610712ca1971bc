from conftest import make_product
from seed import DEFAULT_SLIDES, SAMPLE_PRODUCTS, seed_default_data


def test_seeds_an_empty_store(storage):
    seed_default_data(storage)
    assert len(storage.list_slides()) == len(DEFAULT_SLIDES)
    assert len(storage.list_products()) == len(SAMPLE_PRODUCTS)

    seed_default_data(storage)
    assert len(storage.list_products()) == len(SAMPLE_PRODUCTS)


def test_existing_products_are_left_alone(storage):
    make_product(storage, "Own product")
    seed_default_data(storage)
    assert [p.name for p in storage.list_products()] == ["Own product"]
    assert len(storage.list_slides()) == len(DEFAULT_SLIDES)
