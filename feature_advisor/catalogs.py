"""
Pattern catalogs.

Pure data: compiled regexes and rule tables consumed by the scanner, verifier,
scorer and plan generator. Nothing in this module touches the filesystem.
"""

import re
from dataclasses import dataclass


# Directory names never descended into while walking a tree
IGNORED_DIRS: frozenset[str] = frozenset(
    {
        ".git",
        "node_modules",
        "dist",
        "coverage",
        ".nx",
        ".angular",
        "build",
        "__pycache__",
    }
)

# =============================================================================
# Risk domains
# =============================================================================

RISK_DOMAIN_PATTERNS: dict[str, list[re.Pattern[str]]] = {
    "payments": [
        re.compile(
            r"payment|pay\b|invoice|billing|transaction|checkout|price|cost|amount|fee",
            re.I,
        ),
        re.compile(r"stripe|paypal|mada|stcpay|credit.?card|debit", re.I),
        re.compile(r"refund|charge|wallet|balance", re.I),
        re.compile(r"PaymentService|PaymentStore|PaymentStatus", re.I),
    ],
    "cancellation": [
        re.compile(r"cancel|cancellation|refund|void|undo", re.I),
        re.compile(r"CancellationForm|cancellation-form|CancellationReason", re.I),
        re.compile(r"cancelBooking|cancelOrder|cancelReservation", re.I),
        re.compile(r"cancellationPolicy|cancellationFee", re.I),
    ],
    "timers": [
        re.compile(r"timer|timeout|countdown|hold|expire|holdUntil|expiresAt", re.I),
        re.compile(r"setTimeout|setInterval|clearTimeout|clearInterval", re.I),
        re.compile(r"Observable\.timer|timer\(|interval\(", re.I),
        re.compile(r"HoldTimer|hold-timer|CountdownTimer", re.I),
        re.compile(r"takeUntilDestroyed|ngOnDestroy.*clear", re.I),
    ],
    "async-flows": [
        re.compile(r"subscribe\s*\(|\.pipe\s*\(", re.I),
        re.compile(r"Observable|Promise|async\s+|await\s+", re.I),
        re.compile(r"forkJoin|combineLatest|switchMap|mergeMap|concatMap", re.I),
        re.compile(r"effect\s*\(|computed\s*\(", re.I),
        re.compile(r"loading\s*=\s*signal|isLoading|loading\$", re.I),
        re.compile(r"withMethods|withComputed|signalStore", re.I),
    ],
    "authentication": [
        re.compile(r"auth|login|logout|session|token|jwt|bearer", re.I),
        re.compile(r"password|credential|identity|oauth", re.I),
        re.compile(r"AuthService|AuthGuard|AuthStore", re.I),
    ],
    "data-mutation": [
        re.compile(
            r"update\w*\(|delete\w*\(|remove\w*\(|create\w*\(|insert|patch|put|post",
            re.I,
        ),
        re.compile(r"store\.update|patchState|setState|\.next\(", re.I),
        re.compile(r"save\w*\(|submit\w*\(", re.I),
    ],
    "external-api": [
        re.compile(r"HttpClient|http\.", re.I),
        re.compile(r"fetch\s*\(|axios", re.I),
        re.compile(r"api/|/api|endpoint|baseUrl", re.I),
        re.compile(r"environment\.(api|baseUrl)", re.I),
    ],
    "user-data": [
        re.compile(r"customer|user|profile|personal|email|phone|name|address", re.I),
        re.compile(r"PII|sensitive|private|confidential", re.I),
        re.compile(r"CustomerService|UserStore", re.I),
    ],
}

# =============================================================================
# Improvement patterns (verifier)
# =============================================================================


@dataclass(frozen=True)
class RequiredPattern:
    """A regex that must be present, with a human description."""

    regex: re.Pattern[str]
    description: str


IMPROVEMENT_PATTERNS: dict[str, list[RequiredPattern]] = {
    "error-handling-transport": [
        RequiredPattern(
            re.compile(r"(catch\s*\(|\.catch\s*\(|catchError\s*\(?\s*|catch\s*\{)"),
            "Try-catch or catchError operator (transport layer)",
        ),
        RequiredPattern(
            re.compile(
                r"(subscribe\s*\([^)]*error|error\s*=>|\.pipe\s*\(\s*tap\s*\([^)]*error"
                r"|\.catch\(|catchError)"
            ),
            "Error handler in subscribe, arrow function, or pipe operator",
        ),
    ],
    "error-handling-ui": [
        RequiredPattern(
            re.compile(
                r"(\*ngIf\s*=\s*['\"][^'\"]*error|error\(\)|error\s*\?\s*\?"
                r"|@if\s*\(\s*error\s*\(\s*\)\s*\))"
            ),
            "Error signal/state display (*ngIf or @if with error)",
        ),
        RequiredPattern(
            re.compile(
                r"(role\s*=\s*['\"]alert['\"]|aria-live\s*=\s*['\"]assertive['\"]"
                r"|role\s*=\s*['\"]status['\"])"
            ),
            "Error accessibility (role=alert, aria-live, or role=status)",
        ),
    ],
    "loading-state": [
        RequiredPattern(
            re.compile(r"(loading\(\)|isLoading\(\)|loading\s*=\s*signal)"),
            "Loading signal/state",
        ),
        RequiredPattern(
            re.compile(r"(@if\s*\(loading\(\)\)|ngIf\s*=\s*['\"].*loading['\"])"),
            "Loading UI indicator",
        ),
        RequiredPattern(
            re.compile(r"(aria-busy\s*=|role\s*=\s*['\"]status['\"])"),
            "Loading accessibility (aria-busy or role=status)",
        ),
    ],
    "empty-state": [
        RequiredPattern(
            re.compile(
                r"(\.\s*length\s*===?\s*0|isEmpty\(\)|empty-state|showEmptyState|emptyState)"
            ),
            "Empty check logic (length check, isEmpty, computed signal)",
        ),
        RequiredPattern(
            re.compile(
                r"(\*ngIf\s*=\s*['\"][^'\"]*\.length\s*===?\s*0|@if[^{]*\.length\s*===?\s*0"
                r"|@if\s*\(\s*\w*[Ee]mpty\w*\(\s*\)\s*\)|@empty)"
            ),
            "Empty state UI display (*ngIf, @if with length check, or @if with empty signal)",
        ),
    ],
    "accessibility": [
        RequiredPattern(
            re.compile(r"(aria-label|aria-labelledby|aria-describedby)"),
            "ARIA labels",
        ),
        RequiredPattern(
            re.compile(
                r"role\s*=\s*['\"](button|navigation|main|region|dialog|alert)['\"]"
            ),
            "Semantic roles",
        ),
        RequiredPattern(
            re.compile(r"(<label\s|for\s*=\s*['\"]|id\s*=\s*['\"])"),
            "Form labels and associations",
        ),
    ],
    "tests": [
        RequiredPattern(
            re.compile(r"(describe\s*\(|it\s*\(|test\s*\()"),
            "Test suites (describe/it/test)",
        ),
        RequiredPattern(
            re.compile(r"(expect\s*\(|toBe|toEqual|toHaveBeenCalled)"),
            "Assertions (expect)",
        ),
    ],
    "async-cleanup": [
        RequiredPattern(
            re.compile(r"(takeUntilDestroyed|ngOnDestroy|unsubscribe)"),
            "Subscription cleanup (takeUntilDestroyed/unsubscribe)",
        ),
        RequiredPattern(re.compile(r"(DestroyRef|destroyRef)"), "DestroyRef injection"),
    ],
    "form-validation": [
        RequiredPattern(
            re.compile(r"(Validators\.|required|minLength|maxLength|pattern)"),
            "Validation rules",
        ),
        RequiredPattern(
            re.compile(r"(formControl|ngModel|FormGroup|FormBuilder)"),
            "Form control binding",
        ),
        RequiredPattern(
            re.compile(r"(\.\s*invalid|\.\s*valid|\.\s*errors)"),
            "Validation state checks",
        ),
    ],
    "confirmation-dialogs": [
        RequiredPattern(
            re.compile(r"(confirm\(|ConfirmDialog|confirmation-dialog|MatDialog)"),
            "Confirmation dialog usage",
        ),
        RequiredPattern(
            re.compile(r"(window\.confirm|modal|dialog)", re.I),
            "Modal/dialog for destructive actions",
        ),
    ],
}

FORM_ELEMENT_PATTERN = re.compile(
    r"(<form[\s>]|formGroup|formControl|ngModel|\[formControl\]|\(ngSubmit\)"
    r"|<input[\s>]|<select[\s>]|<textarea[\s>])",
    re.I,
)

# =============================================================================
# Scanner markers
# =============================================================================

STORE_IMPORT_PATTERN = re.compile(r"import\s*\{[^}]*\b(\w+Store)\b[^}]*\}")
STORE_NAME_PATTERN = re.compile(r"\b(\w+Store)\b")
STORE_PATH_IMPORT_PATTERN = re.compile(
    r"import\s*\{[^}]*\}\s*from\s*['\"]([^'\"]*\.store)['\"]"
)
SHARED_STORE_PATH_PATTERN = re.compile(r"state/([^/]+)/([^/]+)\.store")
NAMED_IMPORT_PATTERN = re.compile(r"import\s*\{([^}]*)\}\s*from\s*['\"]([^'\"]+)['\"]")

TODO_PATTERN = re.compile(r"TODO|FIXME|HACK|XXX")
QUALITY_TODO_PATTERN = re.compile(r"\b(TODO|FIXME|HACK)\b")
CLICK_HANDLER_PATTERN = re.compile(r"\(click\)=\"")

IMPORT_PATTERN = re.compile(
    r"\bfrom\s+['\"]([^'\"]+)['\"]"
    r"|\brequire\(\s*['\"]([^'\"]+)['\"]\s*\)"
    r"|\bimport\(\s*['\"]([^'\"]+)['\"]\s*\)"
)
FEATURE_REFERENCE_PATTERN = re.compile(r"features/([^/'\"]+)")
COMPONENT_SELECTOR_PATTERN = re.compile(r"<\s*app-([a-z0-9-]+)", re.I)

# =============================================================================
# Test signal
# =============================================================================

TEST_BLOCK_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"\bit\s*\("),
    re.compile(r"\btest\s*\("),
    re.compile(r"\bxit\s*\("),
    re.compile(r"\bxtest\s*\("),
]

ASSERTION_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"\bexpect\s*\("),
    re.compile(r"\bassert\w*\s*\("),
    re.compile(r"\.should\b"),
]

TESTABLE_ELEMENT_PATTERNS: list[re.Pattern[str]] = [
    re.compile(
        r"^\s+(?:public\s+)?(?!constructor|ngOnInit|ngOnDestroy|ngOnChanges)"
        r"\w+\s*\([^)]*\)\s*[:{]",
        re.MULTILINE,
    ),
    re.compile(r"^\s+on\w+\s*\([^)]*\)\s*[:{]", re.MULTILINE),
    re.compile(r"^\s+handle\w+\s*\([^)]*\)\s*[:{]", re.MULTILINE),
    re.compile(r"^\s+get\s+\w+\s*\(", re.MULTILINE),
    re.compile(r"\bcomputed\s*\("),
]

# =============================================================================
# Accessibility
# =============================================================================

A11Y_MARKERS: list[re.Pattern[str]] = [
    re.compile(r"\baria-", re.I),
    re.compile(r"\brole=", re.I),
    re.compile(r"\btabindex=", re.I),
    re.compile(r"\bcdkTrapFocus\b", re.I),
    re.compile(r"\bcdkFocusInitial\b", re.I),
    re.compile(r"skip[- ]?link", re.I),
    re.compile(r"href=['\"]#(main|content)['\"]", re.I),
]

KEYBOARD_MARKERS: list[re.Pattern[str]] = [
    re.compile(r"\(keydown", re.I),
    re.compile(r"\(keyup", re.I),
    re.compile(r"\(keypress", re.I),
]

# =============================================================================
# Code quality
# =============================================================================

BRANCH_TOKEN_PATTERN = re.compile(
    r"\bif\b|\bfor\b|\bwhile\b|\bcase\b|\bcatch\b|\?\s|&&|\|\|"
)
FUNCTION_TOKEN_PATTERN = re.compile(r"\bfunction\b|=>\s*\{")

LINTER_RULES: dict[str, str] = {
    "complexity": "complexity",
    "max_lines": "max-lines",
    "max_lines_per_function": "max-lines-per-function",
    "max_statements": "max-statements",
    "max_depth": "max-depth",
    "max_params": "max-params",
}

# =============================================================================
# Package manifest
# =============================================================================

NODE_BUILTINS: frozenset[str] = frozenset(
    {
        "fs",
        "path",
        "url",
        "os",
        "http",
        "https",
        "crypto",
        "stream",
        "buffer",
        "child_process",
        "util",
        "events",
        "assert",
    }
)
ALWAYS_USED_PACKAGES: frozenset[str] = frozenset(
    {"rxjs", "zone.js", "tslib", "reflect-metadata", "class-transformer"}
)
ALWAYS_USED_PREFIXES: tuple[str, ...] = ("@angular/", "@nestjs/", "@nx/")

# =============================================================================
# Security
# =============================================================================

SECURITY_PATTERNS: dict[str, re.Pattern[str]] = {
    "eval": re.compile(r"\beval\s*\("),
    "new Function": re.compile(r"\bnew\s+Function\b"),
    "child_process": re.compile(r"\bchild_process\.(exec|execSync|spawn|spawnSync)\b"),
    "innerHTML assignment": re.compile(r"\.innerHTML\s*="),
    "dangerouslySetInnerHTML": re.compile(r"\bdangerouslySetInnerHTML\b"),
    "document.write": re.compile(r"\bdocument\.write\b"),
    "setTimeout string": re.compile(r"\bsetTimeout\(\s*['\"`]"),
    "setInterval string": re.compile(r"\bsetInterval\(\s*['\"`]"),
}

# =============================================================================
# Pattern rules (implementation plan guidance)
# =============================================================================


@dataclass(frozen=True)
class PatternRule:
    """Guidance that applies when a feature shows a given characteristic."""

    name: str
    rules: tuple[str, ...]
    acceptance_criteria: tuple[str, ...]
    content_pattern: re.Pattern[str] | None = None
    risk_domain: str | None = None


PATTERN_RULES: list[PatternRule] = [
    PatternRule(
        name="component",
        rules=(
            "Enforce UI state contract: loading → data/empty → error states",
            "Ensure idempotent user actions (prevent double-submit)",
            "Add proper async feedback for all user interactions",
        ),
        acceptance_criteria=(
            "[ ] All async operations show loading feedback",
            "[ ] Submit buttons disabled during pending operations",
            "[ ] Empty states display when no data exists",
        ),
    ),
    PatternRule(
        name="dialogs",
        rules=(
            "Enforce accessibility: focus trapping, aria-labels, role=dialog",
            "Safe submit behavior: prevent double-submit, disable during action",
            "Handle Escape key to close dialog",
        ),
        acceptance_criteria=(
            "[ ] Dialog traps focus when open",
            "[ ] Escape key closes dialog",
            "[ ] Submit button disabled during action",
        ),
        content_pattern=re.compile(r"dialog|modal|MatDialog|ConfirmDialog", re.I),
    ),
    PatternRule(
        name="timers",
        rules=(
            "Enforce cleanup on destroy: use takeUntilDestroyed or ngOnDestroy",
            "Deterministic behavior: no race conditions between timers",
            "Clear timers before starting new ones",
        ),
        acceptance_criteria=(
            "[ ] All subscriptions use takeUntilDestroyed or are cleaned up",
            "[ ] No memory leaks from timers on component destroy",
        ),
        content_pattern=re.compile(r"timer|timeout|countdown|interval", re.I),
        risk_domain="timers",
    ),
    PatternRule(
        name="stores",
        rules=(
            "Single source of truth: no duplicate state management",
            "Refresh data after mutations (optimistic UI with rollback)",
            "Handle concurrent updates gracefully",
        ),
        acceptance_criteria=(
            "[ ] Store is single source of truth for this data",
            "[ ] Data refreshed after successful mutations",
            "[ ] Optimistic updates roll back on failure",
        ),
    ),
    PatternRule(
        name="forms",
        rules=(
            "Add validation for all form inputs (required, patterns)",
            "Show validation errors inline and accessibly",
            "Disable submit until form is valid",
        ),
        acceptance_criteria=(
            "[ ] All required fields have validation",
            "[ ] Error messages displayed accessibly (aria-live or aria-describedby)",
            "[ ] Submit disabled for invalid forms",
        ),
        content_pattern=re.compile(r"formControl|ngModel|FormGroup|FormBuilder", re.I),
    ),
    PatternRule(
        name="payments",
        rules=(
            "If payment handling is confirmed, validate all amounts server-side",
            "If payment handling is confirmed, show clear pricing before confirmation",
            "If payment handling is confirmed, log payment operations for audit trail",
        ),
        acceptance_criteria=(
            "[ ] If payment handling is confirmed, amounts validated server-side",
            "[ ] If payment handling is confirmed, user sees clear total before confirming",
            "[ ] If payment handling is confirmed, payment operations logged",
        ),
        risk_domain="payments",
    ),
    PatternRule(
        name="cancellation",
        rules=(
            "Require confirmation for all cancellation actions",
            "Capture cancellation reason (required)",
            "Show cancellation policy before action",
        ),
        acceptance_criteria=(
            "[ ] Confirmation dialog before cancellation",
            "[ ] Cancellation reason is required and validated",
            "[ ] Policy displayed before action",
        ),
        risk_domain="cancellation",
    ),
    PatternRule(
        name="tests",
        rules=(
            "Test loading, empty, error, and happy path states",
            "Include at least one edge case test",
            "Mock external dependencies for unit tests",
        ),
        acceptance_criteria=(
            "[ ] Tests cover happy path",
            "[ ] Tests cover error handling",
            "[ ] Tests cover edge cases",
        ),
    ),
]
