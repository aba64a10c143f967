"""
Element Resolver: turns a free-text token into one clicked page element.

Stages, first hit wins:
1. token used as a CSS selector (only when it looks like one)
2. exact element id
3. id/name equality among interactive candidates
4. normalized aria-label or value equality among candidates
5. normalized exact text equality among candidates
6. normalized substring text match among candidates
7. label whose text equals/contains the token, via its ``for`` id

``ElementResolver`` runs the stages inside the page and clicks the match.
``StaticElementResolver`` runs the same stages over captured markup and
only reports what would be clicked.
"""

import json
import logging
from string import Template
from typing import Callable, Iterable, List, NamedTuple, Optional, Union

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from ..core.models import (
    STATUS_CLICKED_HIDDEN,
    STATUS_CLICKED_ID,
    STATUS_CLICKED_MATCH,
    STATUS_CLICKED_SELECTOR,
    STATUS_ERROR_PREFIX,
    STATUS_NOT_FOUND,
    ElementMatch,
    ResolutionResult,
    ResolutionStrategy,
)
from ..infrastructure.surface import ScriptSurface
from ..utils.dom import element_text, in_shadow_template, is_statically_hidden, normalize_text, parse_html
from ..utils.js import render_script

logger = logging.getLogger(__name__)

# Characters that make a token worth trying as a CSS selector.
SELECTOR_SYNTAX_CHARS = frozenset(".#[]> :")

CANDIDATE_SELECTOR = (
    'button, [role="button"], input[type=button], input[type=submit], '
    'a[role="button"], a.button'
)

RESOLVE_TEMPLATE = Template(r"""(function(){
  function norm(s){return (s||'').replace(/\s+/g,' ').trim().toLowerCase();}
  function isVisible(el){try{var r=el.getBoundingClientRect(); return r.width>0 && r.height>0;}catch(e){return true;}}
  function tryClick(el){
    try{el.scrollIntoView({block:'center'});}catch(e){}
    try{el.focus&&el.focus();}catch(e){}
    try{el.dispatchEvent(new MouseEvent('mouseover',{bubbles:true}));}catch(e){}
    try{el.dispatchEvent(new MouseEvent('mousedown',{bubbles:true}));}catch(e){}
    try{el.dispatchEvent(new MouseEvent('mouseup',{bubbles:true}));}catch(e){}
    try{el.click();}catch(e){}
  }
  function done(status, strategy, visible){return JSON.stringify({status:status, strategy:strategy, visible:visible});}
  function settle(el, strategy, status){var visible=isVisible(el); tryClick(el); return done(status||(visible?'clicked:match':'clicked:hidden'), strategy, visible);}
  try{
    var tokTrim=$token.trim();
    var tokNorm=norm(tokTrim);
    if(!tokNorm){ return done('not found', null, false); }
    var el=null;
    if($looks_like_selector){
      try{ el=document.querySelector(tokTrim); }catch(e){ el=null; }
      if(el){ return settle(el, 'selector', 'clicked:selector'); }
    }
    el=document.getElementById(tokTrim);
    if(el){ return settle(el, 'id', 'clicked:id'); }
    var candidates=Array.from(document.querySelectorAll($candidates));
    var match=null, strategy=null;
    function pick(name, pred){ if(match) return; var m=candidates.find(pred); if(m){ match=m; strategy=name; } }
    pick('attribute', function(e){ return (e.id||'')===tokTrim || (e.getAttribute('name')||'')===tokTrim; });
    pick('label_or_value', function(e){ return norm(e.getAttribute('aria-label'))===tokNorm || norm(e.value)===tokNorm; });
    pick('exact_text', function(e){ return norm(e.innerText||e.textContent)===tokNorm; });
    pick('partial_text', function(e){ return norm(e.innerText||e.textContent).indexOf(tokNorm)!==-1; });
    if(!match){
      var lbl=Array.from(document.querySelectorAll('label')).find(function(l){ var t=norm(l.innerText||l.textContent); return t===tokNorm || t.indexOf(tokNorm)!==-1; });
      var forId=lbl ? lbl.getAttribute('for') : null;
      var target=forId ? document.getElementById(forId) : null;
      if(target){ match=target; strategy='label_for'; }
    }
    if(match){ return settle(match, strategy, null); }
    return done('not found', null, false);
  }catch(e){ return done('error:'+String(e), null, false); }
})()""")


def looks_like_selector(token: str) -> bool:
    return any(ch in SELECTOR_SYNTAX_CHARS for ch in token.strip())


class ElementResolver:
    """Resolves and clicks a token inside the page in one evaluation."""

    def build_script(self, token: str) -> str:
        return render_script(
            RESOLVE_TEMPLATE,
            token=token,
            looks_like_selector=looks_like_selector(token),
            candidates=CANDIDATE_SELECTOR,
        )

    async def resolve(
        self,
        token: str,
        surface: Optional[ScriptSurface]
    ) -> Optional[ResolutionResult]:
        """
        Resolve ``token`` against the current page and click the match.

        Args:
            token: Free-text element reference, e.g. ``submit-btn`` or ``Sign in``
            surface: Page script surface; None makes this a no-op

        Returns:
            ResolutionResult, or None when there is no surface. Never raises
            for evaluation errors; they come back as ``error:<message>``.
        """
        if surface is None:
            return None
        token = token.strip()
        if not token:
            return ResolutionResult(status=STATUS_NOT_FOUND)

        try:
            raw = await surface.evaluate_script(self.build_script(token))
        except Exception as e:
            message = getattr(e, "message", None) or str(e)
            result = ResolutionResult(status=f"{STATUS_ERROR_PREFIX}{message}")
        else:
            result = self.parse_result(raw)

        logger.info(f"Resolved '{token}': {result.status}")
        return result

    @staticmethod
    def parse_result(raw: Optional[str]) -> ResolutionResult:
        """Turn the script's return value into a ResolutionResult."""
        if raw is None:
            return ResolutionResult(status=f"{STATUS_ERROR_PREFIX}no result from page")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            # Plain status strings are accepted as-is.
            return ResolutionResult(status=raw)
        if not isinstance(data, dict) or not isinstance(data.get("status"), str):
            return ResolutionResult(status=raw)

        match = None
        if data["status"].startswith("clicked:") and data.get("strategy"):
            match = ElementMatch(
                strategy=ResolutionStrategy(data["strategy"]),
                visible=bool(data.get("visible", True)),
            )
        return ResolutionResult(status=data["status"], match=match)


class LocatedElement(NamedTuple):
    element: Tag
    match: ElementMatch

    @property
    def status(self) -> str:
        """Status the in-page resolver would report for this element."""
        if self.match.strategy is ResolutionStrategy.SELECTOR:
            return STATUS_CLICKED_SELECTOR
        if self.match.strategy is ResolutionStrategy.ID:
            return STATUS_CLICKED_ID
        return STATUS_CLICKED_MATCH if self.match.visible else STATUS_CLICKED_HIDDEN


class StaticElementResolver:
    """
    Runs the resolver stages over captured HTML without touching the page.

    Flattened shadow content is ignored, as it is invisible to
    ``document.querySelector`` on the live page.
    """

    def locate(
        self,
        html: Union[str, BeautifulSoup],
        token: str
    ) -> Optional[LocatedElement]:
        """
        Find the element ``token`` would click.

        Args:
            html: Document markup (e.g. ``PageSnapshot.html``) or parsed soup
            token: Free-text element reference

        Returns:
            LocatedElement, or None if no stage matches
        """
        soup = parse_html(html) if isinstance(html, str) else html
        tok = token.strip()
        tok_norm = normalize_text(tok)
        if not tok_norm:
            return None

        if looks_like_selector(tok):
            try:
                element = self._first(soup.select(tok))
            except (SelectorSyntaxError, NotImplementedError):
                element = None
            if element is not None:
                return self._located(element, ResolutionStrategy.SELECTOR)

        element = self._first(soup.find_all(id=tok))
        if element is not None:
            return self._located(element, ResolutionStrategy.ID)

        candidates = [e for e in soup.select(CANDIDATE_SELECTOR) if not in_shadow_template(e)]
        stages: List[tuple[ResolutionStrategy, Callable[[Tag], bool]]] = [
            (ResolutionStrategy.ATTRIBUTE,
             lambda e: (e.get("id") or "") == tok or (e.get("name") or "") == tok),
            (ResolutionStrategy.LABEL_OR_VALUE,
             lambda e: normalize_text(e.get("aria-label")) == tok_norm
             or normalize_text(e.get("value")) == tok_norm),
            (ResolutionStrategy.EXACT_TEXT,
             lambda e: normalize_text(element_text(e)) == tok_norm),
            (ResolutionStrategy.PARTIAL_TEXT,
             lambda e: tok_norm in normalize_text(element_text(e))),
        ]
        for strategy, predicate in stages:
            element = next((e for e in candidates if predicate(e)), None)
            if element is not None:
                return self._located(element, strategy)

        label = next(
            (lbl for lbl in soup.find_all("label")
             if not in_shadow_template(lbl) and tok_norm in normalize_text(element_text(lbl))),
            None
        )
        if label is not None and label.get("for"):
            element = self._first(soup.find_all(id=label["for"]))
            if element is not None:
                return self._located(element, ResolutionStrategy.LABEL_FOR)

        return None

    @staticmethod
    def _first(elements: Iterable[Tag]) -> Optional[Tag]:
        return next((e for e in elements if not in_shadow_template(e)), None)

    @staticmethod
    def _located(element: Tag, strategy: ResolutionStrategy) -> LocatedElement:
        return LocatedElement(
            element=element,
            match=ElementMatch(strategy=strategy, visible=not is_statically_hidden(element)),
        )
