"""
Shared fixtures: a synthetic Angular-style workspace under tmp_path.

Layout (default settings paths):

    src/app/app.routes.ts                   routes for orders and catalog
    src/app/shared/components/button.component.ts
    src/app/state/orders/orders.store.ts    shared store with catchError
    src/app/features/catalog/               2 components, specs, README, aria
    src/app/features/checkout/              form, imports catalog, no route
    src/app/features/orders/                thin spec, no a11y, no README

Dependency chain: checkout -> catalog -> orders.
"""

from __future__ import annotations

import json
import textwrap
from pathlib import Path

import pytest

from feature_advisor.config import AdvisorSettings, load_settings
from feature_advisor.core.logging import clear_log_context

FEATURES = "src/app/features"


def write(root: Path, relative: str, content: str = "") -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")
    return path


ORDERS_COMPONENT = """
import { Component, inject } from '@angular/core';
import { OrdersStore } from '../../state/orders/orders.store';

@Component({ selector: 'app-orders', templateUrl: './orders.component.html' })
export class OrdersComponent {
  store = inject(OrdersStore);

  loadOrders(): void {
    this.store.load();
  }

  selectOrder(id: string): void {
    this.store.select(id);
  }

  deleteOrder(id: string): void {
    this.store.remove(id);
  }

  refresh(): void {
    this.store.load();
  }

  clearSelection(): void {
    this.store.select(null);
  }
}
"""

ORDERS_TEMPLATE = """
<section class="orders">
  <h1>Orders</h1>
  <ul>
    @for (order of store.orders(); track order.id) {
      <li (click)="selectOrder(order.id)">{{ order.number }}</li>
    }
  </ul>
  <button (click)="refresh()">Refresh</button>
</section>
"""

ORDERS_SPEC = """
import { TestBed } from '@angular/core/testing';
import { OrdersComponent } from './orders.component';

describe('OrdersComponent', () => {
  it('should create', () => {
    const fixture = TestBed.createComponent(OrdersComponent);
    expect(fixture.componentInstance).toBeTruthy();
  });
});
"""

ORDERS_STORE = """
import { signalStore, withMethods } from '@ngrx/signals';

export const OrdersStore = signalStore(
  withMethods((store) => ({
    load() {
      return store.api.list().pipe(catchError((error) => of([])));
    },
  }))
);
"""

CATALOG_COMPONENT = """
import { Component } from '@angular/core';
import { OrderSummary } from '../orders/orders.models';

@Component({ selector: 'app-catalog', templateUrl: './catalog.component.html' })
export class CatalogComponent {
  items: OrderSummary[] = [];

  onSelect(id: string): void {
    this.selected = id;
  }
}
"""

CATALOG_TEMPLATE = """
<section role="region" aria-label="Catalog">
  <app-catalog-item></app-catalog-item>
  <app-button (keydown)="onSelect('x')"></app-button>
</section>
"""

CATALOG_ITEM_COMPONENT = """
import { Component, input } from '@angular/core';

@Component({ selector: 'app-catalog-item', templateUrl: './catalog-item.component.html' })
export class CatalogItemComponent {
  name = input('');
}
"""

CATALOG_SPEC = """
describe('CatalogComponent', () => {
  it('creates', () => {
    expect(true).toBe(true);
    expect(1).toEqual(1);
    expect([]).toEqual([]);
  });
  it('selects', () => {
    expect(true).toBeTruthy();
    expect(2).toBe(2);
    expect('a').toBe('a');
  });
});
"""

CHECKOUT_COMPONENT = """
import { Component } from '@angular/core';
import { FormBuilder, Validators } from '@angular/forms';
import { CatalogService } from '../catalog/catalog.service';

@Component({ selector: 'app-checkout', templateUrl: './checkout.component.html' })
export class CheckoutComponent {
  form = this.fb.group({ email: ['', Validators.required] });

  submit(): void {
    if (this.form.invalid) {
      return;
    }
  }
}
"""

CHECKOUT_TEMPLATE = """
<form [formGroup]="form" (ngSubmit)="submit()">
  <label for="email">Email</label>
  <input id="email" formControlName="email" aria-describedby="email-help" />
  <button type="submit">Pay</button>
</form>
"""

ROUTES = """
export const routes = [
  { path: 'orders', loadComponent: () => import('./features/orders/orders.component') },
  { path: 'catalog', loadComponent: () => import('./features/catalog/catalog.component') },
];
"""

AUTH_SERVICE = "apps/api/src/app/auth/auth.service.ts"

BLOCKER_CATALOG = """
blockers:
  - id: BLOCKER-1
    name: Authentication System
    effort: 20-30h
    blocks_all: true
    required_files:
      - apps/api/src/app/auth/auth.service.ts
    required_patterns:
      - file: apps/api/src/app/auth/auth.service.ts
        pattern: login
  - id: BLOCKER-2
    name: Environment Configuration
    effort: 2-3h
    blocks_all: false
    required_files:
      - src/environments/environment.ts
"""


def build_workspace(root: Path) -> Path:
    """Write the synthetic workspace under ``root`` and return it."""
    write(root, "src/app/app.routes.ts", ROUTES)
    write(root, "src/app/shared/components/button.component.ts", "export class ButtonComponent {}\n")
    write(root, "src/app/state/orders/orders.store.ts", ORDERS_STORE)

    orders = f"{FEATURES}/orders"
    write(root, f"{orders}/orders.component.ts", ORDERS_COMPONENT)
    write(root, f"{orders}/orders.component.html", ORDERS_TEMPLATE)
    write(root, f"{orders}/orders.component.spec.ts", ORDERS_SPEC)

    catalog = f"{FEATURES}/catalog"
    write(root, f"{catalog}/catalog.component.ts", CATALOG_COMPONENT)
    write(root, f"{catalog}/catalog.component.html", CATALOG_TEMPLATE)
    write(root, f"{catalog}/catalog.component.scss", ":host { display: block; }\n")
    write(root, f"{catalog}/catalog.component.spec.ts", CATALOG_SPEC)
    write(root, f"{catalog}/catalog-item.component.ts", CATALOG_ITEM_COMPONENT)
    write(
        root,
        f"{catalog}/catalog-item.component.html",
        '<article aria-label="Item">{{ name() }}</article>\n',
    )
    write(root, f"{catalog}/catalog-item.component.scss", ":host { display: block; }\n")
    write(root, f"{catalog}/catalog-item.component.spec.ts", CATALOG_SPEC)
    write(root, f"{catalog}/README.md", "# Catalog\n")

    checkout = f"{FEATURES}/checkout"
    write(root, f"{checkout}/checkout.component.ts", CHECKOUT_COMPONENT)
    write(root, f"{checkout}/checkout.component.html", CHECKOUT_TEMPLATE)
    return root


def write_blocker_catalog(root: Path, satisfied: bool) -> Path:
    """Write a two-entry blockers.yaml; ``satisfied`` completes the blocks-all one."""
    path = write(root, "blockers.yaml", BLOCKER_CATALOG)
    if satisfied:
        write(root, AUTH_SERVICE, "export class AuthService { login() {} }\n")
    return path


def write_business(root: Path, priorities: dict[str, dict[str, float]]) -> Path:
    return write(root, "business-priority.json", json.dumps({"features": priorities}))


@pytest.fixture(autouse=True)
def _reset_log_context():
    yield
    clear_log_context()


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Synthetic workspace with catalog, checkout and orders features."""
    return build_workspace(tmp_path / "workspace")


@pytest.fixture
def settings(workspace: Path) -> AdvisorSettings:
    """Settings for the workspace with git history disabled."""
    return load_settings(workspace, git_history_limit=0)


@pytest.fixture
def unblocked_settings(workspace: Path) -> AdvisorSettings:
    """Settings for a workspace whose blocks-all blocker is complete."""
    write_blocker_catalog(workspace, satisfied=True)
    return load_settings(workspace, git_history_limit=0)
