import random

import pytest

from errors import InvalidCoupon


def test_add_to_cart_increments_existing_line(store):
    store.add_to_cart("p1")
    store.add_to_cart("p1")
    store.add_to_cart("p2")
    assert [(l.product_id, l.quantity) for l in store.cart] == [("p1", 2), ("p2", 1)]


def test_remove_from_cart_deletes_whole_line(store):
    for _ in range(3):
        store.add_to_cart("p1")
    store.remove_from_cart("p1")
    assert store.cart == []


def test_random_add_remove_sequences_keep_one_line_per_product(store):
    rng = random.Random(7)
    expected = {}
    for _ in range(200):
        pid = rng.choice(["p1", "p2", "p3"])
        if rng.random() < 0.7:
            store.add_to_cart(pid)
            expected[pid] = expected.get(pid, 0) + 1
        else:
            store.remove_from_cart(pid)
            expected.pop(pid, None)
    ids = [l.product_id for l in store.cart]
    assert len(ids) == len(set(ids))
    assert {l.product_id: l.quantity for l in store.cart} == expected


def test_sign_out_clears_cart(store, alice):
    store.sign_in(alice)
    store.add_to_cart("p1")
    store.sign_out()
    assert store.cart == []
    assert store.user is None


def test_cart_summary_without_coupon(store):
    store.add_to_cart("p1")
    store.add_to_cart("p1")
    store.add_to_cart("p2")
    summary = store.cart_summary()
    assert summary["subtotal"] == 45.0
    assert summary["discount"] == 0.0
    assert summary["total"] == 45.0
    assert summary["item_count"] == 3


def test_cart_summary_percentage_coupon(store):
    store.add_to_cart("p1")
    summary = store.cart_summary(" audio25 ")
    assert summary["coupon"] == "AUDIO25"
    assert summary["discount"] == pytest.approx(2.5)
    assert summary["total"] == pytest.approx(7.5)
    assert summary["discount_label"] == "25%"


def test_flat_coupon_never_drives_total_negative(store):
    store.add_to_cart("p1")
    store.products[0].price = 4.0
    summary = store.cart_summary("PWRUP10")
    assert summary["discount"] == 4.0
    assert summary["total"] == 0.0
    assert summary["discount_label"] == "$10"


def test_unknown_coupon_is_rejected(store):
    store.add_to_cart("p1")
    with pytest.raises(InvalidCoupon):
        store.cart_summary("FREESTUFF")


def test_deleting_a_product_drops_its_cart_line(store, admin):
    store.sign_in(admin)
    store.add_to_cart("p1")
    store.add_to_cart("p2")
    store.delete_product("p1")
    assert [l.product_id for l in store.cart] == ["p2"]
    assert store.cart_summary()["subtotal"] == 25.0
