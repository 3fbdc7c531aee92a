"""React component sources shared by the tests."""

BUTTON_SOURCE = """import React from 'react';

export default function Btn({ label }) {
  return <button>{label}</button>;
}
"""

BUTTON_SOURCE_V2 = """import React from 'react';

export default function Btn({ label }) {
  return <button className="primary">{label}</button>;
}
"""

CARD_SOURCE = """import React from 'react';

export const Card = ({ title, children }) => {
  return (
    <section>
      <h2>{title}</h2>
      {children}
    </section>
  );
};
"""

UNDEFINED_CALL_SOURCE = """import React from 'react';

export default function Card({ title }) {
  const total = computeTotal();
  return <div>{title} {total}</div>;
}
"""
