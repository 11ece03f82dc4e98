"""
JavaScript evaluated inside pages and frames.

Scripts are kept side-effect free where possible; the only mutation is the
``data-stylesnap-field`` marker used to address login inputs by locator.
"""

STEALTH_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
"""

# Collects every visible node matched by ``selectors`` in the document and in
# every open shadow root. Each root gets its own namespace so ids stay unique
# (element-<frame>-<root>-<ordinal>). Iframes are not entered here; child
# frames are evaluated separately from Python.
COLLECT_CANDIDATES_JS = """
({ frameIndex, maxNodes, selectors, minSize, maxText }) => {
  const PROPS = [
    'color', 'backgroundColor', 'fontFamily', 'fontSize', 'fontWeight', 'lineHeight', 'letterSpacing',
    'padding', 'paddingTop', 'paddingRight', 'paddingBottom', 'paddingLeft',
    'margin', 'marginTop', 'marginRight', 'marginBottom', 'marginLeft',
    'border', 'borderWidth', 'borderStyle', 'borderColor', 'borderTopColor', 'borderBottomColor',
    'borderRadius', 'borderTopLeftRadius', 'borderTopRightRadius', 'borderBottomLeftRadius',
    'borderBottomRightRadius', 'display', 'visibility', 'opacity'
  ];
  const seen = new WeakSet();
  const candidates = [];
  let rootCounter = 0;

  const classOf = (el) => typeof el.className === 'string' ? el.className : (el.getAttribute('class') || '');

  const cssPath = (el) => {
    const parts = [];
    let node = el;
    while (node && node.nodeType === 1 && parts.length < 5) {
      let part = node.tagName.toLowerCase();
      if (node.id) {
        parts.unshift(`${part}#${CSS.escape(node.id)}`);
        break;
      }
      const cls = classOf(node).trim().split(/\\s+/)[0];
      if (cls) part += `.${CSS.escape(cls)}`;
      const parent = node.parentElement;
      if (parent) {
        const siblings = Array.from(parent.children).filter((s) => s.tagName === node.tagName);
        if (siblings.length > 1) part += `:nth-of-type(${siblings.indexOf(node) + 1})`;
      }
      parts.unshift(part);
      node = parent;
    }
    return parts.join(' > ');
  };

  const describe = (el, cs, rect, id) => {
    const styles = {};
    for (const prop of PROPS) styles[prop] = cs[prop] || '';
    return {
      id,
      tag: el.tagName.toLowerCase(),
      text: (el.textContent || '').trim().slice(0, maxText),
      className: classOf(el),
      rect: { x: Math.round(rect.x), y: Math.round(rect.y), width: Math.round(rect.width), height: Math.round(rect.height) },
      styles,
      attributes: {
        href: el.href ? String(el.href) : '',
        alt: el.alt || '',
        src: el.src ? String(el.src) : '',
        role: el.getAttribute('role') || ''
      },
      selector: cssPath(el)
    };
  };

  const visit = (root) => {
    const rootId = rootCounter++;
    let ordinal = 0;
    for (const selector of selectors) {
      let nodes;
      try {
        nodes = root.querySelectorAll(selector);
      } catch (_) {
        continue;
      }
      for (const el of nodes) {
        if (candidates.length >= maxNodes) return;
        if (seen.has(el)) continue;
        seen.add(el);
        const rect = el.getBoundingClientRect();
        if (rect.width <= minSize || rect.height <= minSize) continue;
        const cs = window.getComputedStyle(el);
        if (cs.display === 'none' || cs.visibility === 'hidden' || parseFloat(cs.opacity) < 0.1) continue;
        candidates.push(describe(el, cs, rect, `element-${frameIndex}-${rootId}-${ordinal++}`));
      }
    }
    const walker = document.createTreeWalker(root, NodeFilter.SHOW_ELEMENT);
    let node;
    while ((node = walker.nextNode())) {
      if (candidates.length >= maxNodes) return;
      if (node.shadowRoot) visit(node.shadowRoot);
    }
  };

  visit(document);
  return { title: document.title || '', url: window.location.href, candidates };
}
"""

DETECT_SPA_JS = """
({ globals, markers, threshold }) => {
  if (globals.some((name) => typeof window[name] !== 'undefined')) return true;
  try {
    if (document.querySelector(markers)) return true;
  } catch (_) {}
  return document.scripts.length > threshold;
}
"""

LOADING_CLEARED_JS = """
(selector) => {
  const nodes = Array.from(document.querySelectorAll(selector));
  return nodes.every((el) => {
    const cs = window.getComputedStyle(el);
    return cs.display === 'none' || cs.visibility === 'hidden' || el.offsetParent === null;
  });
}
"""

CONTENT_PRESENT_JS = """
({ selector, minimum }) => document.querySelectorAll(selector).length > minimum
"""

DOM_SIZE_JS = """
(minimum) => document.querySelectorAll('body *').length > minimum
"""

# Describes every input and tags it so Python can address it with
# ``[data-stylesnap-field="<index>"]``.
ENUMERATE_INPUTS_JS = """
() => Array.from(document.querySelectorAll('input')).map((input, index) => {
  input.setAttribute('data-stylesnap-field', String(index));
  const rect = input.getBoundingClientRect();
  const cs = window.getComputedStyle(input);
  return {
    index,
    type: (input.getAttribute('type') || 'text').toLowerCase(),
    name: input.name || '',
    id: input.id || '',
    placeholder: input.placeholder || '',
    autocomplete: input.getAttribute('autocomplete') || '',
    ariaLabel: input.getAttribute('aria-label') || '',
    visible: rect.width > 0 && rect.height > 0 && cs.display !== 'none' && cs.visibility !== 'hidden',
    enabled: !input.disabled && !input.readOnly
  };
})
"""

URL_LEFT_LOGIN_JS = """
(markers) => !markers.some((marker) => window.location.href.toLowerCase().includes(marker))
"""

PASSWORD_FIELD_PRESENT_JS = """
() => !!document.querySelector('input[type="password"]')
"""
