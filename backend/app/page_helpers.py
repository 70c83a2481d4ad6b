"""
Page Helpers

Element resolver installed into the page under test as ``window.__mdw``.
Turns human-readable labels and captions into DOM elements through ordered
fallback strategies:

- byLabel:           <label> -> aria-label -> placeholder
- clickByText:       exact button -> button text -> input buttons -> any text
                     -> form submit -> Enter key
- visibleTextExists: whitespace-normalized substring of the body text
- typeByLabel:       byLabel + value assignment + input/change events

Each strategy is a finder that only looks; the first one that returns a
result decides, and only then is anything clicked, typed or submitted.
Ties inside a strategy go to the first element in document order.
"""

import json


HELPERS_GLOBAL = "__mdw"

# Returned by a helper call evaluated in a document that has no helpers
HELPERS_MISSING = "__mdw_missing__"

HELPERS_SCRIPT = r"""
const norm = s => (s || '').replace(/\s+/g, ' ').trim();
const eqOrContains = (text, target) => text === target || text.includes(target);
const CONTROL_TAG = /^(INPUT|TEXTAREA|SELECT)$/i;
const CONTROLS = 'input,textarea,select';
const BUTTONS = 'button,[role=button]';
const INPUT_BUTTONS = 'input[type=submit],input[type=button],input[type=reset]';

const xpathLiteral = s => {
  if (!s.includes("'")) return "'" + s + "'";
  if (!s.includes('"')) return '"' + s + '"';
  return "concat('" + s.split("'").join("', \"'\", '") + "')";
};

const labelFinders = [
  // <label> text -> for=, nested control, or the next sibling control
  target => {
    for (const lb of document.querySelectorAll('label')) {
      if (!eqOrContains(norm(lb.textContent), target)) continue;
      const id = lb.getAttribute('for');
      if (id) {
        const byId = document.getElementById(id);
        if (byId) return byId;
      }
      const nested = lb.querySelector(CONTROLS);
      if (nested) return nested;
      let el = lb.nextElementSibling;
      while (el && !CONTROL_TAG.test(el.tagName)) el = el.nextElementSibling;
      if (el) return el;
    }
    return null;
  },
  target => Array.from(document.querySelectorAll('[aria-label]'))
    .find(e => norm(e.getAttribute('aria-label')) === target) || null,
  target => Array.from(document.querySelectorAll(CONTROLS))
    .find(e => {
      const placeholder = e.getAttribute('placeholder');
      return placeholder !== null && eqOrContains(norm(placeholder), target);
    }) || null,
];

const press = el => () => el.click();

const clickFinders = [
  // exact: normalize-space(.) compares the full string value, nested markup included
  caption => {
    const lit = xpathLiteral(caption);
    const xp = "//button[normalize-space(.)=" + lit + "]"
             + " | //*[@role='button' and normalize-space(.)=" + lit + "]";
    const snap = document.evaluate(xp, document, null, XPathResult.ORDERED_NODE_SNAPSHOT_TYPE, null);
    return snap.snapshotLength ? press(snap.snapshotItem(0)) : null;
  },
  caption => {
    const buttons = Array.from(document.querySelectorAll(BUTTONS));
    const el = buttons.find(e => norm(e.textContent) === caption)
            || buttons.find(e => norm(e.textContent).includes(caption));
    return el ? press(el) : null;
  },
  caption => {
    const inputs = Array.from(document.querySelectorAll(INPUT_BUTTONS));
    const el = inputs.find(e => [e.value, e.name, e.title]
      .some(v => v && eqOrContains(norm(v), caption)));
    return el ? press(el) : null;
  },
  caption => {
    if (!document.body) return null;
    const all = Array.from(document.body.querySelectorAll('*'));
    // wrappers carry their children's text; take the innermost element of a match set
    const innermost = list => list.find(e => !list.some(o => o !== e && e.contains(o)));
    const exact = innermost(all.filter(e => norm(e.textContent) === caption));
    if (exact) return press(exact);
    const holder = innermost(all.filter(e => norm(e.textContent).includes(caption)));
    return holder ? press(holder) : null;
  },
  () => {
    const active = document.activeElement;
    if (active && active.form && typeof active.form.requestSubmit === 'function') {
      return () => active.form.requestSubmit();
    }
    const form = document.querySelector('form');
    if (form && typeof form.requestSubmit === 'function') return () => form.requestSubmit();
    return null;
  },
  () => {
    const active = document.activeElement;
    if (!active) return null;
    return () => active.dispatchEvent(new KeyboardEvent('keydown', {
      key: 'Enter', code: 'Enter', keyCode: 13, which: 13, bubbles: true
    }));
  },
];

const byLabel = label => {
  const target = norm(label);
  for (const find of labelFinders) {
    const el = find(target);
    if (el) return el;
  }
  return null;
};

const clickTier = caption => {
  const target = norm(caption);
  for (let i = 0; i < clickFinders.length; i++) {
    const action = clickFinders[i](target);
    if (action) return { tier: i + 1, action };
  }
  return null;
};

const setValue = (el, value) => {
  const descriptor = Object.getOwnPropertyDescriptor(Object.getPrototypeOf(el), 'value');
  if (descriptor && descriptor.set) descriptor.set.call(el, value);
  else el.value = value;
};

window.__mdw = {
  norm,
  byLabel,
  clickByText(caption) {
    const hit = clickTier(caption);
    if (!hit) return false;
    hit.action();
    return true;
  },
  clickTier(caption) {
    const hit = clickTier(caption);
    return hit ? hit.tier : 0;
  },
  visibleTextExists(text) {
    return norm(document.body ? document.body.innerText : '').includes(norm(text));
  },
  typeByLabel(label, value) {
    const el = byLabel(label);
    if (!el) return false;
    el.focus();
    if ('value' in el) setValue(el, value);
    el.dispatchEvent(new Event('input', { bubbles: true }));
    el.dispatchEvent(new Event('change', { bubbles: true }));
    return true;
  }
};
"""

PAGE_HAS_TEXT_EXPR = "!!(document.body && document.body.innerText.length > 0)"
PAGE_MARKUP_EXPR = "document.documentElement.outerHTML"


def _call(method: str, *args) -> str:
    arguments = ", ".join(json.dumps(arg) for arg in args)
    helpers = f"window.{HELPERS_GLOBAL}"
    return f"{helpers} ? {helpers}.{method}({arguments}) : {json.dumps(HELPERS_MISSING)}"


def type_by_label_expr(label: str, value: str) -> str:
    return _call("typeByLabel", label, value)


def click_by_text_expr(caption: str) -> str:
    return _call("clickByText", caption)


def click_tier_expr(caption: str) -> str:
    """Index (1-based) of the click strategy that would act, 0 for none"""
    return _call("clickTier", caption)


def visible_text_exists_expr(text: str) -> str:
    return _call("visibleTextExists", text)
