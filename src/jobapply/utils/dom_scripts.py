"""In-page scripts evaluated by the locator and the flow.

The collector returns `{nodes, info}`: element references plus a plain
description of each (text, label context, geometry, computed style). Matching
and visibility decisions are made on the Python side from `info`.
"""

CLICKABLE_SELECTOR = (
    'a, button, input[type="button"], input[type="submit"], '
    '[role="button"], [role="link"], [role="checkbox"], label'
)
FILLABLE_SELECTOR = (
    'textarea, input[type="text"], input[type="email"], input:not([type]), '
    '[contenteditable="true"], [contenteditable=""]'
)
CHECKBOX_SELECTOR = 'input[type="checkbox"], [role="checkbox"], label'
STRUCTURAL_SELECTOR = (
    'a, button, input[type="button"], input[type="submit"], [role="button"]'
)

COLLECT_ELEMENTS_JS = r"""
(args) => {
  const { mode, selector, maxNodes, clickableSelector } = args;
  const nodes = [];
  const info = [];
  const seen = new Set();

  const attr = (el, name) => (el.getAttribute && el.getAttribute(name)) || '';

  const labelContext = (el) => {
    const parts = [attr(el, 'aria-label'), attr(el, 'placeholder'), attr(el, 'name')];
    try {
      if (el.id) {
        const root = el.getRootNode && el.getRootNode().querySelector ? el.getRootNode() : document;
        const forLabel = root.querySelector(`label[for="${CSS.escape(el.id)}"]`);
        if (forLabel) parts.push(forLabel.innerText || forLabel.textContent || '');
      }
    } catch (e) {}
    const wrapping = el.closest && el.closest('label');
    if (wrapping) parts.push(wrapping.innerText || '');
    const context = el.closest && el.closest('div, fieldset, section');
    if (context) parts.push((context.innerText || '').slice(0, 220));
    return parts.filter(Boolean).join(' ').replace(/\s+/g, ' ').trim().slice(0, 600);
  };

  const describe = (el, ownText) => {
    const r = el.getBoundingClientRect();
    const cs = window.getComputedStyle(el);
    const text = ownText !== undefined ? ownText : (el.innerText || el.textContent || '');
    return {
      tag: (el.tagName || '').toLowerCase(),
      type: attr(el, 'type'),
      role: attr(el, 'role'),
      text: text.replace(/\s+/g, ' ').trim().slice(0, 300),
      aria_label: attr(el, 'aria-label'),
      placeholder: attr(el, 'placeholder'),
      value: typeof el.value === 'string' ? el.value.slice(0, 200) : '',
      title: attr(el, 'title'),
      alt: attr(el, 'alt'),
      href: el.href ? String(el.href) : attr(el, 'href'),
      id: String(el.id || ''),
      name: attr(el, 'name'),
      cls: typeof el.className === 'string' ? el.className : attr(el, 'class'),
      automation_id: attr(el, 'data-automation-id'),
      label: labelContext(el),
      editable: !!el.isContentEditable,
      x: r.left + r.width / 2,
      y: r.top + r.height / 2,
      width: r.width,
      height: r.height,
      display: cs.display,
      visibility: cs.visibility,
      opacity: cs.opacity,
      outer: (el.outerHTML || '').slice(0, 400),
    };
  };

  const push = (el, ownText) => {
    if (nodes.length >= maxNodes) return;
    if (seen.has(el)) return;
    try {
      info.push(describe(el, ownText));
      nodes.push(el);
      seen.add(el);
    } catch (e) {}
  };

  if (mode === 'shadow') {
    // Worklist over document and every open shadow root.
    const queue = [document];
    while (queue.length && nodes.length < maxNodes) {
      const root = queue.shift();
      let all;
      try { all = root.querySelectorAll('*'); } catch (e) { continue; }
      for (const el of all) {
        if (el.shadowRoot) queue.push(el.shadowRoot);
        try { if (el.matches(selector)) push(el); } catch (e) {}
      }
    }
  } else if (mode === 'flat') {
    document.querySelectorAll(selector).forEach((el) => push(el));
  } else if (mode === 'anchors') {
    document.querySelectorAll('a[href]').forEach((el) => push(el));
  } else if (mode === 'brute') {
    for (const el of document.body ? document.body.querySelectorAll('*') : []) {
      if (nodes.length >= maxNodes) break;
      let own = '';
      for (const child of el.childNodes) {
        if (child.nodeType === Node.TEXT_NODE) own += child.textContent;
      }
      own = (own + ' ' + attr(el, 'aria-label') + ' ' + attr(el, 'title') + ' ' + attr(el, 'alt')).trim();
      if (!own) continue;
      const target = el.closest(clickableSelector) || el;
      push(target, own);
    }
  }
  return { nodes, info };
}
"""

NATIVE_CLICK_JS = """
(el) => {
  el.scrollIntoView({ block: 'center', inline: 'center' });
  el.click();
  return true;
}
"""

SYNTHETIC_CLICK_JS = """
(el) => {
  el.scrollIntoView({ block: 'center', inline: 'center' });
  const r = el.getBoundingClientRect();
  const opts = {
    bubbles: true, cancelable: true, composed: true, view: window,
    clientX: r.left + r.width / 2, clientY: r.top + r.height / 2,
  };
  for (const type of ['pointerover', 'pointerenter', 'pointerdown', 'pointerup']) {
    el.dispatchEvent(new PointerEvent(type, { ...opts, pointerId: 1, isPrimary: true }));
  }
  el.dispatchEvent(new MouseEvent('click', opts));
  return true;
}
"""

FILL_JS = """
(el, text) => {
  el.scrollIntoView({ block: 'center' });
  if (el.isContentEditable) {
    el.focus();
    document.execCommand('selectAll', false, null);
    document.execCommand('insertText', false, text);
    return 'contenteditable';
  }
  const proto = el.tagName === 'TEXTAREA' ? HTMLTextAreaElement.prototype : HTMLInputElement.prototype;
  const setter = Object.getOwnPropertyDescriptor(proto, 'value').set;
  el.focus();
  setter.call(el, text);
  el.dispatchEvent(new Event('input', { bubbles: true }));
  el.dispatchEvent(new Event('change', { bubbles: true }));
  return 'native-setter';
}
"""

READ_VALUE_JS = """
(el) => el.isContentEditable ? (el.innerText || '') : (typeof el.value === 'string' ? el.value : '')
"""

CHECKED_STATE_JS = """
(el) => {
  const control = el.tagName === 'LABEL'
    ? (el.control || el.querySelector('input[type=checkbox], [role=checkbox]'))
    : el;
  if (!control) return null;
  if (typeof control.checked === 'boolean') return control.checked;
  return control.getAttribute('aria-checked') === 'true';
}
"""

BODY_TEXT_JS = "() => (document.body && document.body.innerText) || ''"

ROOT_STATE_JS = """
(selector) => {
  const root = document.querySelector(selector);
  if (!root) return null;
  return root.childElementCount > 0;
}
"""

SAME_ORIGIN_FRAME_TEXT_JS = """
() => {
  const texts = [];
  for (const frame of document.querySelectorAll('iframe')) {
    try {
      const doc = frame.contentDocument;
      if (doc && doc.body) texts.push(doc.body.innerText || '');
    } catch (e) {}
  }
  return texts;
}
"""
