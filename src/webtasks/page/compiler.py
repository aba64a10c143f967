"""
Script Compiler: turns an OperationPreset into a page-script expression.

Compilation is pure. Selector syntax is not checked here; an invalid
selector throws inside the page and surfaces as an ExecutionFailure from
the script surface.
"""

from string import Template
from typing import Optional

from ..core.models import OperationPreset, OperationType
from ..utils.js import escape_js, js_string, render_script


NAVIGATE_TEMPLATE = "window.location.href='$url'"

CLICK_TEMPLATE = Template(
    "(function(){var el=document.querySelector($selector); "
    "if(el){el.click(); return 'clicked';} return 'not found';})()"
)

TYPE_TEMPLATE = Template(
    "(function(){var el=document.querySelector($selector); "
    "if(el){el.focus(); el.value=$value; "
    "el.dispatchEvent(new Event('input',{bubbles:true})); return 'typed';} "
    "return 'not found';})()"
)

EXTRACT_TEXT_TEMPLATE = Template(
    "(function(){var el=document.querySelector($selector); "
    "return el? (el.innerText||el.textContent||''): ''})()"
)

# Heuristic username lookup used when the caller gives no selector.
DEFAULT_USERNAME_LOOKUP = (
    "(document.querySelector('input[type=email],input[type=text][name*=email i],"
    "input[type=text][name*=user i],input[name*=email i],input[name*=user i]') "
    "|| document.querySelector('input[type=text],input:not([type])'))"
)

DEFAULT_PASSWORD_LOOKUP = "document.querySelector('input[type=password]')"

CREDENTIAL_FILL_TEMPLATE = Template(
    "(function(){var uEl=$username_lookup; var pEl=$password_lookup; "
    "if(uEl){uEl.focus(); uEl.value=$username; "
    "uEl.dispatchEvent(new Event('input',{bubbles:true}));} "
    "if(pEl){pEl.focus(); pEl.value=$password; "
    "pEl.dispatchEvent(new Event('input',{bubbles:true}));} "
    "var btn=null; var cs=Array.from(document.querySelectorAll('button, input[type=submit]')); "
    "for(var i=0;i<cs.length;i++){var b=cs[i]; var t=(b.innerText||b.textContent||''); "
    "if((b.type||'').toLowerCase()=='submit' || /log\\s*in|sign\\s*in/i.test(t) "
    "|| /login|signin/i.test(b.id||'') || /login|signin/i.test(b.name||'')){btn=b; break;}} "
    "if(btn){btn.click(); return 'filled+submitted';} return 'filled';})()"
)

FOCUS_PASSWORD_SCRIPT = (
    "(function(){var pw=document.querySelector('input[type=password]'); "
    "if(pw){pw.focus(); return true;} return false;})()"
)


class ScriptCompiler:
    """
    Compiles presets and login helpers into self-contained expressions.

    Every interpolated value is escaped by ``webtasks.utils.js``. Navigation
    targets are the one exception: single quotes are percent-encoded so the
    URL stays literal.
    """

    def compile(self, preset: OperationPreset) -> str:
        """
        Compile a preset into a script string.

        Args:
            preset: Operation to compile

        Returns:
            Script expression; click/type scripts evaluate to ``clicked`` /
            ``typed`` or ``not found``, extractText to the element text
        """
        if preset.type is OperationType.NAVIGATE:
            return self.compile_navigate(preset.value)
        if preset.type is OperationType.CLICK:
            return render_script(CLICK_TEMPLATE, selector=preset.selector)
        if preset.type is OperationType.TYPE:
            return render_script(TYPE_TEMPLATE, selector=preset.selector, value=preset.value)
        if preset.type is OperationType.EXTRACT_TEXT:
            return render_script(EXTRACT_TEXT_TEMPLATE, selector=preset.selector)
        raise ValueError(f"Unsupported operation type: {preset.type}")

    def compile_navigate(self, url: str) -> str:
        # No quote survives the percent-encoding, escape_js only handles
        # backslashes and control characters here.
        target = escape_js(url.replace("'", "%27"))
        return Template(NAVIGATE_TEMPLATE).substitute(url=target)

    def compile_credential_fill(
        self,
        username: str,
        password: str,
        username_selector: Optional[str] = None,
        password_selector: Optional[str] = None
    ) -> str:
        """
        Compile a one-time login fill.

        Fills the username and password fields, dispatches ``input`` events
        and clicks the first submit-like button.

        Args:
            username: Username or e-mail to enter
            password: Password to enter
            username_selector: Explicit username field selector
            password_selector: Explicit password field selector

        Returns:
            Script evaluating to ``filled+submitted`` or ``filled``
        """
        username_lookup = (
            render_script("document.querySelector($s)", s=username_selector)
            if username_selector else DEFAULT_USERNAME_LOOKUP
        )
        password_lookup = (
            render_script("document.querySelector($s)", s=password_selector)
            if password_selector else DEFAULT_PASSWORD_LOOKUP
        )
        # Lookups are already script fragments; only the credentials are literals.
        return CREDENTIAL_FILL_TEMPLATE.substitute(
            username_lookup=username_lookup,
            password_lookup=password_lookup,
            username=js_string(username),
            password=js_string(password),
        )

    def compile_focus_password(self) -> str:
        return FOCUS_PASSWORD_SCRIPT
