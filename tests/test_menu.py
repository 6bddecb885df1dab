from services.menu import FALLBACK_CATEGORY, MenuState, group_by_category, load_menu


class TestLoadMenu:
    """Public menu loading"""

    def test_unknown_store(self, db_session_override):
        view = load_menu(db_session_override, "does-not-exist")
        assert view.state is MenuState.NOT_FOUND
        assert view.store is None

    def test_unavailable_when_window_closed(self, db_session_override, make_owner, make_store, expired_window):
        store = make_store(make_owner(subscription=expired_window))
        view = load_menu(db_session_override, store.id)
        assert view.state is MenuState.UNAVAILABLE
        assert view.categories == {}

    def test_owner_without_subscription_row_is_served(self, db_session_override, make_owner, make_store, make_product):
        store = make_store(make_owner(subscription=None))
        make_product(store, "Burger", "10.00")
        assert load_menu(db_session_override, store.id).state is MenuState.OK

    def test_grouped_active_products(self, db_session_override, store, products):
        view = load_menu(db_session_override, store.id)
        assert view.state is MenuState.OK
        assert view.store.id == store.id
        assert list(view.categories) == ["Lanches", "Porções", FALLBACK_CATEGORY]
        assert [p.name for p in view.categories["Lanches"]] == ["Burger"]
        assert [p.name for p in view.categories[FALLBACK_CATEGORY]] == ["Soda"]
        assert view.product_count == 3

    def test_products_of_other_stores_are_not_listed(self, db_session_override, store, products, make_owner, make_store, make_product):
        other = make_store(make_owner(), name="Outra Loja")
        make_product(other, "Pizza", "40.00", category="Lanches")
        view = load_menu(db_session_override, store.id)
        assert all(p.store_id == store.id for items in view.categories.values() for p in items)

    def test_custom_gate(self, db_session_override, store, products):
        view = load_menu(db_session_override, store.id, gate=lambda window: False)
        assert view.state is MenuState.UNAVAILABLE


class TestGroupByCategory:
    def test_keeps_input_order(self):
        class P:
            def __init__(self, name, category):
                self.name, self.category = name, category

        grouped = group_by_category([P("a", "Bebidas"), P("b", None), P("c", "Bebidas"), P("d", "")])
        assert list(grouped) == ["Bebidas", FALLBACK_CATEGORY]
        assert [p.name for p in grouped["Bebidas"]] == ["a", "c"]
        assert [p.name for p in grouped[FALLBACK_CATEGORY]] == ["b", "d"]
